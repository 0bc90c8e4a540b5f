"""
Utilidades para generación de PDFs de reportes contables
=========================================================

- Cabecera con nombre y RUT de la empresa
- Pie de página con fecha de generación y numeración
- Tabla con fila de totales resaltada
"""
from io import BytesIO
from datetime import datetime
from typing import List, Optional
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.enums import TA_LEFT, TA_RIGHT


def create_report_pdf(
    company_name: str,
    company_rut: Optional[str],
    report_title: str,
    headers: List[str],
    rows: List[List[str]],
    subtitle: Optional[str] = None,
) -> BytesIO:
    """
    Crea un PDF apaisado con una tabla de datos. La última fila se trata
    como fila de totales. Las columnas a partir de la cuarta son montos y se
    alinean a la derecha.
    """
    buffer = BytesIO()
    page_size = landscape(A4)

    def _header_footer(canvas_obj, doc):
        canvas_obj.saveState()
        if doc.page == 1:
            canvas_obj.setFont("Helvetica-Bold", 12)
            canvas_obj.drawCentredString(page_size[0] / 2.0, page_size[1] - 0.6*inch, report_title)
            canvas_obj.setFont("Helvetica", 9)
            canvas_obj.drawCentredString(page_size[0] / 2.0, page_size[1] - 0.8*inch, company_name)
            if company_rut:
                canvas_obj.drawCentredString(page_size[0] / 2.0, page_size[1] - 0.95*inch, f"RUT: {company_rut}")
            if subtitle:
                canvas_obj.drawCentredString(page_size[0] / 2.0, page_size[1] - 1.1*inch, subtitle)
        canvas_obj.setFont("Helvetica", 7)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawString(0.5*inch, 0.5*inch, f"Generado el {datetime.now().strftime('%d/%m/%Y %H:%M')}")
        canvas_obj.drawRightString(page_size[0] - 0.5*inch, 0.5*inch, f"Página {canvas_obj.getPageNumber()}")
        canvas_obj.restoreState()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        rightMargin=0.5*inch,
        leftMargin=0.5*inch,
        topMargin=1.3*inch,
        bottomMargin=0.9*inch,
    )

    styles = getSampleStyleSheet()
    text_style = ParagraphStyle('Data', parent=styles['Normal'], fontSize=8, leading=10, alignment=TA_LEFT)
    number_style = ParagraphStyle('Number', parent=text_style, alignment=TA_RIGHT)
    bold_style = ParagraphStyle('Bold', parent=text_style, fontName='Helvetica-Bold')

    data = [[Paragraph(str(h), bold_style) for h in headers]]
    for row in rows:
        data.append([
            Paragraph(str(cell) if cell is not None else "", number_style if i >= 3 else text_style)
            for i, cell in enumerate(row)
        ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f0f0f0')),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#e0e0e0')),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
    ]))

    doc.build([table], onFirstPage=_header_footer, onLaterPages=_header_footer)
    buffer.seek(0)
    return buffer
