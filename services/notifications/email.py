from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional

from ._retry import execute_with_retries
from .types import DeliveryResult

logger = logging.getLogger(__name__)


async def send_email_message(
    *,
    smtp_server: str,
    smtp_port: int,
    from_address: str,
    to_addresses: Iterable[str],
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    use_tls: bool = True,
    use_ssl: bool = False,
    max_retries: int = 2,
    backoff_seconds: float = 0.5,
    timeout: float = 10.0,
    send_func=None,
) -> DeliveryResult:
    """Send a plain text (and optional HTML) email with retries.

    ``send_func`` can be provided for testing to replace the actual SMTP call.
    """

    recipients = tuple(to_addresses)

    async def _dispatch() -> dict:
        if send_func is not None:
            result = send_func()
            if asyncio.iscoroutine(result):
                await result
        else:
            await asyncio.to_thread(
                _send_email_sync,
                smtp_server,
                smtp_port,
                from_address,
                recipients,
                subject,
                body,
                html_body,
                username,
                password,
                use_tls,
                use_ssl,
                timeout,
            )
        return {"recipients": list(recipients)}

    return await execute_with_retries(
        "email",
        _dispatch,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
        redact=password,
    )


def _build_message(
    from_address: str,
    to_addresses: Iterable[str],
    subject: str,
    body: str,
    html_body: Optional[str],
) -> MIMEText | MIMEMultipart:
    if html_body is None:
        message: MIMEText | MIMEMultipart = MIMEText(body, "plain", "utf-8")
    else:
        message = MIMEMultipart("alternative")
        message.attach(MIMEText(body, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
    message["Subject"] = subject
    message["From"] = from_address
    message["To"] = ", ".join(to_addresses)
    return message


def _send_email_sync(
    smtp_server: str,
    smtp_port: int,
    from_address: str,
    to_addresses: Iterable[str],
    subject: str,
    body: str,
    html_body: Optional[str],
    username: Optional[str],
    password: Optional[str],
    use_tls: bool,
    use_ssl: bool,
    timeout: float,
) -> None:
    recipients = list(to_addresses)
    message = _build_message(from_address, recipients, subject, body, html_body)

    factory = smtplib.SMTP_SSL if use_ssl else smtplib.SMTP
    with factory(smtp_server, smtp_port, timeout=timeout) as smtp:
        if use_tls and not use_ssl:
            smtp.starttls()
        if username and password:
            smtp.login(username, password)
        smtp.send_message(message, from_addr=from_address, to_addrs=recipients)
    logger.info("Email notification sent", extra={"recipients": len(recipients)})
