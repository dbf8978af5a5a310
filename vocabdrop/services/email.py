import logging
from typing import Optional

import resend

from vocabdrop.config import settings
from vocabdrop.schemas.jobs import ScheduleRunSummary

logger = logging.getLogger(__name__)


class EmailService:
    """Operator notifications using the Resend API."""

    def __init__(self):
        self._client = None
        if settings.resend_api_key:
            resend.api_key = settings.resend_api_key
            self._client = resend
            logger.info("Resend email service initialized")
        else:
            logger.warning("RESEND_API_KEY not configured, emails will be logged only")

    def build_scheduler_report(self, summary: ScheduleRunSummary) -> tuple[str, str]:
        """Return (subject, html) for a daily scheduler run."""
        alarm = " - LOW SUCCESS RATE" if summary.low_success else ""
        subject = f"Daily Scheduler Report - {summary.date.isoformat()}{alarm}"

        failures = [r for r in summary.results if r.status in ("failed", "partial")]
        failure_rows = "".join(
            f"<li>{r.phone}: {r.status}"
            f"{' - ' + r.error if r.error else ''}</li>"
            for r in failures
        )
        failure_block = (
            f"<h3 style=\"color: #dc3545;\">Issues</h3><ul>{failure_rows}</ul>"
            if failures
            else ""
        )
        alarm_block = (
            f"<p style=\"color: #dc3545; font-weight: bold;\">Only {summary.success_rate:.0%} "
            "of subscriptions were fully scheduled.</p>"
            if summary.low_success
            else ""
        )

        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #333;">Daily Scheduler Report</h2>
            <p>Date: {summary.date.isoformat()}</p>
            {alarm_block}
            <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
                <p style="margin: 5px 0;"><strong>Total Active Subscriptions:</strong> {summary.total_subscriptions}</p>
                <p style="margin: 5px 0;"><strong>Successfully Scheduled:</strong> {summary.scheduled}</p>
                <p style="margin: 5px 0;"><strong>Partially Scheduled:</strong> {summary.partial}</p>
                <p style="margin: 5px 0;"><strong>Failed:</strong> {summary.failed}</p>
                <p style="margin: 5px 0;"><strong>Skipped:</strong> {summary.skipped}</p>
                <p style="margin: 5px 0;"><strong>Already Scheduled:</strong> {summary.already_scheduled}</p>
                <p style="margin: 5px 0;"><strong>Messages Scheduled:</strong> {summary.messages_inserted}</p>
            </div>
            {failure_block}
        </body>
        </html>
        """
        return subject, html_body

    def send_scheduler_report(
        self, summary: ScheduleRunSummary
    ) -> tuple[bool, Optional[str], Optional[str]]:
        """
        Send the daily scheduler summary to the operator.

        Returns:
            tuple: (success, email_id, error_message)
        """
        subject, html_body = self.build_scheduler_report(summary)

        if not self._client:
            logger.info(
                f"[DRY RUN] Would send email to {settings.operator_email}: {subject}"
            )
            return True, "dry-run-id", None

        try:
            params = {
                "from": settings.email_from_address,
                "to": [settings.operator_email],
                "subject": subject,
                "html": html_body,
            }
            response = self._client.Emails.send(params)
            email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
            logger.info(f"Scheduler report sent to {settings.operator_email}, id: {email_id}")
            return True, email_id, None
        except Exception as e:
            error_msg = str(e)
            logger.error(f"Failed to send scheduler report: {error_msg}")
            return False, None, error_msg


# Singleton instance
email_service = EmailService()
