"""
Servicio de numeración correlativa (asientos y comprobantes).

Formato de asientos: ASI-NNNNN (ej: ASI-00042)
Formato de comprobantes: número de 8 dígitos por serie (ej: PART-00000007)

La fuente de verdad es la fila de sequence_counters de cada secuencia, leída
con SELECT FOR UPDATE. El bloqueo se mantiene hasta el commit de la
transacción que usa el número, por lo que dos requests concurrentes no
pueden obtener el mismo valor. La primera vez que se usa una secuencia el
contador se siembra a partir del último número ya guardado.
"""
import re
import time
from typing import Callable, Optional
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.models import SequenceCounter
from ..infrastructure.repositories import SequenceRepository, JournalRepository
from ..infrastructure.logging_config import get_logger

logger = get_logger("correlativos")

SECUENCIA_ASIENTOS = "asientos"


def formatear_numero(prefix: str, valor: int, digits: int) -> str:
    return f"{prefix}-{str(valor).zfill(digits)}"


def semilla_desde_numero(ultimo: Optional[str], prefix: str = "ASI", digits: int = 5) -> int:
    """
    Valor del último correlativo usado a partir de su representación.

    - None (libro vacío) -> 0
    - "ASI-00042" -> 42
    - formato irreconocible -> sufijo de timestamp, para no repetir números
    """
    if not ultimo:
        return 0
    match = re.match(rf"^{re.escape(prefix)}-(\d+)$", ultimo.strip())
    if match:
        return int(match.group(1))
    logger.warning(f"Correlativo '{ultimo}' con formato desconocido, se usa sufijo de timestamp")
    return int(str(int(time.time() * 1000))[-digits:])


def siguiente_numero_asiento(ultimo: Optional[str], prefix: str = "ASI", digits: int = 5) -> str:
    """ASI-00042 -> ASI-00043; sin asientos previos -> ASI-00001"""
    return formatear_numero(prefix, semilla_desde_numero(ultimo, prefix, digits) + 1, digits)


def siguiente_valor(db: Session, company_id: int, sequence: str, semilla: Callable[[], int]) -> int:
    """
    Incrementa y devuelve el contador de la secuencia.
    El incremento solo es visible cuando la transacción del llamador hace commit.
    """
    counter = SequenceRepository(db).locked(company_id, sequence)
    if counter is None:
        counter = SequenceCounter(company_id=company_id, sequence=sequence, value=semilla())
        db.add(counter)
    counter.value = (counter.value or 0) + 1
    db.flush()
    logger.debug(f"Secuencia {sequence} (empresa {company_id}) -> {counter.value}")
    return counter.value


def generar_numero_asiento(db: Session, company_id: int) -> str:
    prefix = settings.entry_number_prefix
    digits = settings.entry_number_digits

    def _semilla() -> int:
        ultimo = JournalRepository(db).last_number(company_id, prefix)
        return semilla_desde_numero(ultimo, prefix, digits)

    valor = siguiente_valor(db, company_id, SECUENCIA_ASIENTOS, _semilla)
    return formatear_numero(prefix, valor, digits)


def generar_numero_comprobante(db: Session, company_id: int, model, series: str, digits: int | None = None) -> str:
    """
    Siguiente número de 8 dígitos para la serie de un comprobante
    (SalesInvoice, PurchaseInvoice, CreditNote).
    """
    digits = digits or settings.invoice_number_digits

    def _semilla() -> int:
        numeros = (
            db.query(model.number)
            .filter(model.company_id == company_id, model.series == series)
            .all()
        )
        valores = [int(n) for (n,) in numeros if n and n.isdigit()]
        return max(valores) if valores else 0

    valor = siguiente_valor(db, company_id, f"{model.__tablename__}:{series}", _semilla)
    return str(valor).zfill(digits)
