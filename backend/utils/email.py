import random
import smtplib
from email.message import EmailMessage
from typing import List, Optional, Tuple
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def get_mail_accounts() -> List[Tuple[str, str]]:
    """Sender accounts as (user, password) pairs; SMTP_USERNAME first, then SMTP_ACCOUNTS"""
    accounts = []
    if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
        accounts.append((settings.SMTP_USERNAME, settings.SMTP_PASSWORD))
    for entry in settings.SMTP_ACCOUNTS or []:
        user, sep, password = (entry or "").partition(":")
        if not sep or not user or not password:
            logger.warning("Ignoring malformed SMTP_ACCOUNTS entry")
            continue
        accounts.append((user.strip(), password.strip()))
    return accounts


def pick_mail_account() -> Optional[Tuple[str, str]]:
    accounts = get_mail_accounts()
    if not accounts:
        return None
    return random.choice(accounts)


def _build_message(subject: str, from_email: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{from_email}>" if settings.SMTP_FROM_NAME else from_email
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _open_connection() -> smtplib.SMTP:
    timeout = settings.SMTP_TIMEOUT or 15
    if settings.SMTP_USE_SSL:
        server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout)
    else:
        server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout)
    server.set_debuglevel(1 if settings.SMTP_DEBUG else 0)
    if not settings.SMTP_USE_SSL and settings.SMTP_USE_TLS:
        server.starttls()
    return server


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> bool:
    account = pick_mail_account()
    if not settings.SMTP_HOST or account is None:
        logger.warning("SMTP not configured; skipping email send")
        return False
    user, password = account
    try:
        msg = _build_message(subject, user, to_email, html_body, text_body)
        with _open_connection() as server:
            server.login(user, password)
            server.send_message(msg)
        logger.info(f"Sent email to {to_email} from {user} with subject '{subject}'")
        return True
    except Exception as exc:
        logger.error(f"Failed to send email to {to_email} from {user}: {exc}")
        return False


def verify_mail_accounts() -> dict:
    """Try logging in with every pooled account; returns {user: ok}"""
    results = {}
    if not settings.SMTP_HOST:
        logger.warning("SMTP not configured; skipping account verification")
        return results
    for user, password in get_mail_accounts():
        try:
            with _open_connection() as server:
                server.login(user, password)
            results[user] = True
            logger.info(f"Mail account ready: {user}")
        except Exception as exc:
            results[user] = False
            logger.error(f"Mail account {user} failed verification: {exc}")
    return results


def send_otp_email(to_email: str, otp_code: str) -> bool:
    minutes = settings.OTP_EXPIRE_MINUTES
    subject = "Your OTP Verification Code"
    text = f"Your OTP code is {otp_code}. It expires in {minutes} minutes."
    html = f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Hello</h2>
      <p>Your One-Time Password (OTP) for email verification is:</p>
      <p style='font-size: 24px; font-weight: bold; letter-spacing: 4px; color: #4CAF50;'>{otp_code}</p>
      <p>This OTP is valid for <strong>{minutes} minutes</strong>.</p>
      <p>If you did not request this, you can safely ignore this email.</p>
      <p>Thanks,<br/>{settings.SMTP_FROM_NAME or 'Findex'} Team</p>
    </div>
    """
    return send_email(subject, to_email, html, text)
