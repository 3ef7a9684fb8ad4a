import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from config import ENV, EMAIL_CONFIG
from logger import get_logger

log = get_logger("emailer")

def send_email(to_addrs: List[str], subject: str, html: str) -> bool:
    if not to_addrs:
        log.warning("No recipients for email; skipping.")
        return False

    msg = MIMEMultipart("alternative")
    # non-LIVE mail carries its environment in the subject
    msg["Subject"] = subject if ENV == "LIVE" else f"[{ENV}] {subject}"
    msg["From"] = EMAIL_CONFIG["from_addr"]
    msg["To"] = ", ".join(to_addrs)

    msg.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(EMAIL_CONFIG["smtp_server"], EMAIL_CONFIG["smtp_port"], timeout=30) as server:
            server.starttls()
            if EMAIL_CONFIG["smtp_password"]:
                server.login(EMAIL_CONFIG["smtp_username"], EMAIL_CONFIG["smtp_password"])
            server.sendmail(msg["From"], to_addrs, msg.as_string())
        log.info(f"Email sent: {subject} -> {to_addrs}")
        return True
    except Exception as e:
        log.error(f"Failed sending email: {e}")
        return False
