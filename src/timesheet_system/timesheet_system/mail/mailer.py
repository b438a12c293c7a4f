from __future__ import annotations

import smtplib
from dataclasses import dataclass
from decimal import Decimal
from email.message import EmailMessage
from html import escape
from typing import Optional, Protocol

from loguru import logger


class Mailer(Protocol):
    def send_final_approval_email(
        self,
        *,
        owner_email: str,
        owner_name: str,
        period_label: str,
        total_hours: Decimal,
        adjustment_hours: Decimal,
        regular_hours: Decimal,
        approver_name: str,
    ) -> bool:
        raise NotImplementedError


class NullMailer(Mailer):
    def send_final_approval_email(self, *, owner_email: str, **_) -> bool:
        logger.debug(f"Email disabled, skipping final approval mail to {owner_email}")
        return False


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int = 587
    user: str = ""
    password: str = ""
    from_addr: str = ""
    use_tls: bool = True
    use_ssl: bool = False
    timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["SmtpConfig"]:
        data = data or {}
        if not data.get("host") or not data.get("user") or not data.get("password"):
            return None
        return cls(
            host=str(data["host"]),
            port=int(data.get("port", 587)),
            user=str(data["user"]),
            password=str(data["password"]),
            from_addr=str(data.get("from_addr") or data["user"]),
            use_tls=bool(data.get("use_tls", True)),
            use_ssl=bool(data.get("use_ssl", False)),
            timeout=float(data.get("timeout", 10.0)),
        )


class SmtpMailer(Mailer):
    def __init__(self, config: SmtpConfig, *, app_base_url: str = ""):
        self._config = config
        self._base_url = app_base_url.rstrip("/")

    def _send(self, *, to: str, subject: str, text: str, html: str) -> bool:
        msg = EmailMessage()
        msg["From"] = self._config.from_addr
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        cfg = self._config
        try:
            if cfg.use_ssl:
                client = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
            else:
                client = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
            with client:
                if cfg.use_tls and not cfg.use_ssl:
                    client.starttls()
                client.login(cfg.user, cfg.password)
                client.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception(f"Failed to send email to {to}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    def send_final_approval_email(
        self,
        *,
        owner_email: str,
        owner_name: str,
        period_label: str,
        total_hours: Decimal,
        adjustment_hours: Decimal,
        regular_hours: Decimal,
        approver_name: str,
    ) -> bool:
        if not owner_email:
            logger.warning("Final approval email skipped: owner has no email address")
            return False

        subject = f"Timesheet Finally Approved - {period_label}"
        text = (
            f"Hi {owner_name},\n\n"
            f"Your timesheet for {period_label} has been approved by {approver_name}.\n\n"
            f"Regular hours: {regular_hours}\n"
            f"Adjustment hours: {adjustment_hours}\n"
            f"Total hours: {total_hours}\n"
        )
        if self._base_url:
            text += f"\nView it at {self._base_url}\n"

        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Timesheet Finally Approved</h2>
          <p>Hi {escape(owner_name)},</p>
          <p>Your timesheet for <strong>{escape(period_label)}</strong> has been approved by
             {escape(approver_name)}.</p>
          <table>
            <tr><td>Regular hours</td><td>{regular_hours}</td></tr>
            <tr><td>Adjustment hours</td><td>{adjustment_hours}</td></tr>
            <tr><td><strong>Total hours</strong></td><td><strong>{total_hours}</strong></td></tr>
          </table>
          <p style="color: #666; font-size: 12px;">Automated notification from the Timesheet Management System.</p>
        </div>
        """
        return self._send(to=owner_email, subject=subject, text=text, html=html)


def build_mailer(smtp_config: Optional[dict], *, enabled: bool, app_base_url: str = "") -> Mailer:
    if not enabled:
        logger.info("Email notifications disabled by configuration")
        return NullMailer()
    config = SmtpConfig.from_dict(smtp_config)
    if config is None:
        logger.info("SMTP not configured, email notifications disabled")
        return NullMailer()
    return SmtpMailer(config, app_base_url=app_base_url)
