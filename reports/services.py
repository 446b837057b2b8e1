"""
Report Generation Services
Following SOLID principles:
- SRP: Each class has single responsibility
- OCP: Open for extension (can add new report types)
- DIP: Depends on abstractions (ReportGenerator, Exporter)
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from decimal import Decimal
from io import BytesIO
from typing import Dict, List, Optional

from django.db.models import Sum
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.exceptions import BatchNotFound
from distribution.models import DistributionBatch
from donations.models import Donation
from donors.models import display_name_for

HEADER_COLOR = '366092'


class ReportData:
    """Data container for report results"""
    def __init__(self, title: str, headers: List[str], rows: List[List], summary: Optional[Dict] = None,
                 landscape_pages: bool = False):
        self.title = title
        self.headers = headers
        self.rows = rows
        self.summary = summary or {}
        self.landscape_pages = landscape_pages
        self.generated_at = timezone.now()


class Exporter(ABC):
    """Abstract base class for exporters"""

    content_type = 'application/octet-stream'
    extension = 'bin'

    @abstractmethod
    def export(self, report_data: ReportData) -> BytesIO:
        """Export report data to file format"""


class ExcelExporter(Exporter):
    """
    Excel exporter using openpyxl.
    Following SRP: Only responsible for Excel export.
    """

    content_type = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    extension = 'xlsx'

    def export(self, report_data: ReportData) -> BytesIO:
        wb = Workbook()
        ws = wb.active
        ws.title = "Report"
        last_column = get_column_letter(max(len(report_data.headers), 1))

        ws.merge_cells(f'A1:{last_column}1')
        ws['A1'] = report_data.title
        ws['A1'].font = Font(size=16, bold=True)
        ws['A1'].alignment = Alignment(horizontal='center')

        ws.merge_cells(f'A2:{last_column}2')
        ws['A2'] = f"Generated: {timezone.localtime(report_data.generated_at).strftime('%Y-%m-%d %H:%M')}"
        ws['A2'].alignment = Alignment(horizontal='center')

        header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)
        for col_num, header in enumerate(report_data.headers, 1):
            cell = ws.cell(row=4, column=col_num, value=header)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal='center')

        for row_num, row_data in enumerate(report_data.rows, 5):
            for col_num, value in enumerate(row_data, 1):
                # openpyxl has no Decimal cell type
                if isinstance(value, Decimal):
                    value = float(value)
                ws.cell(row=row_num, column=col_num, value=value)

        if report_data.summary:
            summary_row = len(report_data.rows) + 6
            ws.cell(row=summary_row, column=1, value="Summary").font = Font(bold=True)
            for idx, (key, value) in enumerate(report_data.summary.items(), 1):
                ws.cell(row=summary_row + idx, column=1, value=key)
                ws.cell(row=summary_row + idx, column=2, value=str(value))

        for col_idx in range(1, len(report_data.headers) + 1):
            lengths = [
                len(str(cell.value))
                for row in ws.iter_rows(min_row=4, min_col=col_idx, max_col=col_idx)
                for cell in row
                if cell.value is not None
            ]
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max(lengths, default=8) + 2, 50)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output


class PDFExporter(Exporter):
    """
    PDF exporter using ReportLab.
    Following SRP: Only responsible for PDF export.
    """

    content_type = 'application/pdf'
    extension = 'pdf'

    def export(self, report_data: ReportData) -> BytesIO:
        output = BytesIO()
        pagesize = landscape(A4) if report_data.landscape_pages else A4
        doc = SimpleDocTemplate(output, pagesize=pagesize, title=report_data.title)
        elements = []

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            'ReportTitle',
            parent=styles['Heading1'],
            fontSize=18,
            textColor=colors.HexColor(f'#{HEADER_COLOR}'),
            alignment=TA_CENTER,
            spaceAfter=12
        )

        elements.append(Paragraph(report_data.title, title_style))
        elements.append(Paragraph(
            f"Generated: {timezone.localtime(report_data.generated_at).strftime('%Y-%m-%d %H:%M')}",
            styles['Normal']
        ))
        elements.append(Spacer(1, 0.3 * inch))

        table_data = [report_data.headers] + [[str(value) for value in row] for row in report_data.rows]
        table = Table(table_data, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(f'#{HEADER_COLOR}')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 11),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 1), (-1, -1), 9),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.lightgrey]),
        ]))
        elements.append(table)

        if report_data.summary:
            elements.append(Spacer(1, 0.3 * inch))
            elements.append(Paragraph("<b>Summary</b>", styles['Heading2']))
            summary_table = Table([[key, str(value)] for key, value in report_data.summary.items()])
            summary_table.setStyle(TableStyle([
                ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
                ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 10),
                ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ]))
            elements.append(summary_table)

        doc.build(elements)
        output.seek(0)
        return output


class ReportGenerator(ABC):
    """
    Abstract base class for report generators.
    Following OCP: Open for extension, closed for modification.
    """

    @abstractmethod
    def generate(self, **kwargs) -> ReportData:
        """Generate report data"""


class DonationReportGenerator(ReportGenerator):
    """
    Donations received over a period, optionally limited to campaigns.
    """

    def generate(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        campaign_ids: Optional[List[int]] = None,
        report_type: str = 'custom'
    ) -> ReportData:
        now = timezone.now()
        if report_type == 'daily':
            date_from = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
            date_to = now
            title = f"Daily Donation Report - {date_from.strftime('%Y-%m-%d')}"
        elif report_type == 'weekly':
            start = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
            date_from = start - timedelta(days=start.weekday())
            date_to = now
            title = f"Weekly Donation Report - Week of {date_from.strftime('%Y-%m-%d')}"
        elif report_type == 'monthly':
            date_from = timezone.localtime(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            date_to = now
            title = f"Monthly Donation Report - {date_from.strftime('%B %Y')}"
        else:
            title = "Custom Donation Report"
            if date_from and date_to:
                title += f" ({date_from.strftime('%Y-%m-%d')} to {date_to.strftime('%Y-%m-%d')})"

        queryset = Donation.objects.select_related('campaign', 'user')
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)
        if campaign_ids:
            queryset = queryset.filter(campaign_id__in=campaign_ids)
        queryset = queryset.order_by('-created_at')

        headers = ['Date', 'Receipt', 'Donor', 'Phone', 'Campaign', 'Type', 'Amount (INR)', 'Tip (INR)', 'Payment Ref']
        rows = []
        for donation in queryset:
            rows.append([
                timezone.localtime(donation.created_at).strftime('%Y-%m-%d %H:%M'),
                donation.receipt_number,
                'Anonymous' if donation.is_anonymous else (donation.contact_name or display_name_for(donation.user)),
                donation.contact_phone,
                donation.campaign.title,
                donation.get_kind_display(),
                donation.amount,
                donation.tip_amount,
                donation.gateway_payment_id or 'N/A',
            ])

        totals = queryset.aggregate(amount=Sum('amount'), tips=Sum('tip_amount'))
        count = len(rows)
        total_amount = totals['amount'] or Decimal('0.00')
        summary = {
            'Total Donations': count,
            'Total Amount': f"INR {total_amount:,.2f}",
            'Total Tips': f"INR {(totals['tips'] or Decimal('0.00')):,.2f}",
            'Average Donation': f"INR {(total_amount / count if count else Decimal('0.00')):,.2f}",
        }
        return ReportData(title=title, headers=headers, rows=rows, summary=summary, landscape_pages=True)


class BatchManifestGenerator(ReportGenerator):
    """
    Packing manifest for a distribution batch: one row per member item.
    """

    def generate(self, batch_id: int) -> ReportData:
        batch = DistributionBatch.objects.select_related('campaign', 'campaign_product__product').filter(pk=batch_id).first()
        if batch is None:
            raise BatchNotFound()

        memberships = (
            batch.memberships.filter(is_active=True)
            .select_related('fulfillment_item__donation__user', 'fulfillment_item__personalization')
            .order_by('fulfillment_item__created_at', 'fulfillment_item__id')
        )

        headers = ['#', 'Item', 'Donation', 'Donor', 'Quantity', 'Value (INR)', 'Status', 'Has Image']
        rows = []
        for index, membership in enumerate(memberships, 1):
            item = membership.fulfillment_item
            personalization = getattr(item, 'personalization', None)
            donor = (personalization.donor_name if personalization else '') or display_name_for(item.donation.user)
            rows.append([
                index,
                item.pk,
                item.donation.receipt_number,
                'Anonymous Donor' if item.donation.is_anonymous else donor,
                membership.quantity_allocated,
                item.total_price,
                item.get_status_display(),
                'Yes' if personalization and personalization.is_image_available else 'No',
            ])

        summary = {
            'Campaign': batch.campaign.title,
            'Product': batch.campaign_product.product.name,
            'Planned Date': batch.planned_distribution_date.strftime('%Y-%m-%d'),
            'Status': batch.get_status_display(),
            'Items': batch.total_items,
            'Units': sum(row[4] for row in rows),
            'Total Value': f"INR {batch.total_value:,.2f}",
            'Progress': f"{batch.progress_percentage}%",
        }
        return ReportData(title=f"Batch Manifest - {batch.name}", headers=headers, rows=rows, summary=summary)


class ReportService:
    """
    Main service for report generation and export.
    Following DIP: Depends on abstractions (ReportGenerator, Exporter).
    """

    def __init__(self):
        self.donation_generator = DonationReportGenerator()
        self.manifest_generator = BatchManifestGenerator()
        self.exporters = {
            'excel': ExcelExporter(),
            'pdf': PDFExporter(),
        }

    def exporter_for(self, format: str) -> Exporter:
        return self.exporters.get((format or '').lower(), self.exporters['excel'])

    def generate_donation_report(self, format: str = 'excel', **kwargs) -> BytesIO:
        return self.exporter_for(format).export(self.donation_generator.generate(**kwargs))

    def generate_batch_manifest(self, batch_id: int, format: str = 'pdf') -> BytesIO:
        return self.exporter_for(format).export(self.manifest_generator.generate(batch_id=batch_id))
