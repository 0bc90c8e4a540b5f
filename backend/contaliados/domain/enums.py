from enum import Enum

class AccountType(str, Enum):
    ACTIVO = "ACTIVO"
    PASIVO = "PASIVO"
    PATRIMONIO = "PATRIMONIO"
    INGRESO = "INGRESO"
    GASTO = "GASTO"

    @property
    def saldo_deudor(self) -> bool:
        """Naturaleza deudora: ACTIVO y GASTO. El resto es acreedora."""
        return self in (AccountType.ACTIVO, AccountType.GASTO)

class UserRole(str, Enum):
    ADMINISTRADOR = "ADMINISTRADOR"
    CONTADOR = "CONTADOR"
    OPERADOR = "OPERADOR"
    AUDITOR = "AUDITOR"

class EstadoAsiento(str, Enum):
    BORRADOR = "borrador"
    CONFIRMADO = "confirmado"

class EstadoPeriodo(str, Enum):
    ABIERTO = "abierto"
    CERRADO = "cerrado"
    CERRADO_DEFINITIVO = "cerrado_definitivo"

class TipoCierre(str, Enum):
    PERIODO = "PERIODO"
    EJERCICIO = "EJERCICIO"

class AccionCierre(str, Enum):
    CIERRE = "CIERRE"
    REAPERTURA = "REAPERTURA"

class EstadoFactura(str, Enum):
    BORRADOR = "borrador"
    PENDIENTE = "pendiente"
    PAGADA = "pagada"
    ANULADA = "anulada"

class EstadoComision(str, Enum):
    PENDIENTE = "pendiente"
    FACTURADA = "facturada"

class EstadoPagoComision(str, Enum):
    PENDIENTE = "pendiente"
    PAGADA = "pagada"

class EstadoCuentaPorPagar(str, Enum):
    PENDIENTE = "PENDIENTE"
    PARCIAL = "PARCIAL"
    PAGADA = "PAGADA"

class FrecuenciaFacturacion(str, Enum):
    SEMANAL = "semanal"
    QUINCENAL = "quincenal"
    MENSUAL = "mensual"
    BIMENSUAL = "bimensual"

class TipoNotaCredito(str, Enum):
    TOTAL = "total"
    PARCIAL = "parcial"
