"""
Report Generation Mutations
Handles report generation with staff permissions
"""

import base64
import logging
from datetime import datetime
from typing import List, Optional

import strawberry
from django.utils import timezone

from core.exceptions import PipelineError
from donors.roles import PermissionChecker
from reports.services import ReportService
from .types import ReportResponse

logger = logging.getLogger(__name__)

REPORT_FORMATS = ['excel', 'pdf']
REPORT_TYPES = ['daily', 'weekly', 'monthly', 'custom']


def _file_response(buffer, filename: str, exporter) -> ReportResponse:
    return ReportResponse(
        success=True,
        message="Report generated successfully",
        file_data=base64.b64encode(buffer.read()).decode('utf-8'),
        filename=filename,
        content_type=exporter.content_type,
    )


def _check_access(info, format: str) -> Optional[ReportResponse]:
    user = info.context.request.user
    if not user.is_authenticated:
        return ReportResponse(success=False, message="Authentication required")
    if not PermissionChecker.can_generate_reports(user):
        return ReportResponse(success=False, message="Requires staff privileges to generate reports")
    if format.lower() not in REPORT_FORMATS:
        return ReportResponse(success=False, message="Invalid format. Must be 'excel' or 'pdf'")
    return None


class ReportMutations:
    """
    Report generation mutations.
    All mutations require staff privileges.
    """

    def generate_donation_report(
        self,
        info,
        format: str,
        report_type: str = 'custom',
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        campaign_ids: Optional[List[strawberry.ID]] = None
    ) -> ReportResponse:
        """
        Generate donation report.

        Args:
            format: Export format ('excel' or 'pdf')
            report_type: Type of report ('daily', 'weekly', 'monthly', 'custom')
            date_from: Start date (for custom reports)
            date_to: End date (for custom reports)
            campaign_ids: Filter by campaigns

        Returns:
            ReportResponse with base64 encoded file data
        """
        denied = _check_access(info, format)
        if denied:
            return denied

        if report_type not in REPORT_TYPES:
            return ReportResponse(
                success=False,
                message="Invalid report type. Must be 'daily', 'weekly', 'monthly', or 'custom'"
            )

        service = ReportService()
        try:
            buffer = service.generate_donation_report(
                format=format,
                report_type=report_type,
                date_from=date_from,
                date_to=date_to,
                campaign_ids=[int(pk) for pk in campaign_ids] if campaign_ids else None,
            )
        except Exception as e:
            logger.exception("Donation report generation failed")
            return ReportResponse(success=False, message=f"Error generating report: {str(e)}")

        exporter = service.exporter_for(format)
        filename = f"donation_report_{report_type}_{timezone.localtime().strftime('%Y%m%d_%H%M%S')}.{exporter.extension}"
        return _file_response(buffer, filename, exporter)

    def generate_batch_manifest(
        self,
        info,
        batch_id: strawberry.ID,
        format: str = 'pdf'
    ) -> ReportResponse:
        """Packing manifest for one distribution batch"""
        denied = _check_access(info, format)
        if denied:
            return denied

        service = ReportService()
        try:
            buffer = service.generate_batch_manifest(int(batch_id), format=format)
        except PipelineError as e:
            return ReportResponse(success=False, message=e.message)
        except Exception as e:
            logger.exception(f"Manifest generation for batch {batch_id} failed")
            return ReportResponse(success=False, message=f"Error generating report: {str(e)}")

        exporter = service.exporter_for(format)
        return _file_response(buffer, f"batch_{batch_id}_manifest.{exporter.extension}", exporter)
