# emailer.py
# RFP invitation emails. SMTP when SMTP_HOST is set, otherwise the message is
# queued in the store outbox (simulated send, handy for local dev).

import smtplib
import uuid
from email.mime.text import MIMEText
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import Settings
from .log import get_logger
from .models import OutboxMessage, Rfp, Vendor
from .storage import Storage

log = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)


class EmailSender(Protocol):
    def send(self, vendor: Vendor, rfp: Rfp) -> bool:
        ...


def rfp_subject(rfp: Rfp) -> str:
    # services.match_rfp reads the RFPID token back out of replies
    return f"Request for Proposal - {rfp.title} [RFPID:{rfp.id}]"


def render_rfp_email(rfp: Rfp, vendor: Vendor) -> str:
    return _env.get_template("rfp_email.html").render(rfp=rfp, vendor=vendor)


class OutboxSender:
    def __init__(self, store: Storage):
        self.store = store

    def send(self, vendor: Vendor, rfp: Rfp) -> bool:
        self.store.append_outbox(OutboxMessage(
            id=str(uuid.uuid4()),
            rfp_id=rfp.id,
            vendor_id=vendor.id,
            vendor_email=vendor.email,
            subject=rfp_subject(rfp),
            html=render_rfp_email(rfp, vendor),
        ))
        log.info("rfp_email_queued", rfp_id=rfp.id, to=vendor.email)
        return True


class SmtpSender:
    def __init__(self, cfg: Settings):
        self.cfg = cfg

    def send(self, vendor: Vendor, rfp: Rfp) -> bool:
        msg = MIMEText(render_rfp_email(rfp, vendor), "html", "utf-8")
        msg["Subject"] = rfp_subject(rfp)
        msg["From"] = self.cfg.email_from
        msg["To"] = vendor.email
        try:
            with smtplib.SMTP(self.cfg.smtp_host, self.cfg.smtp_port, timeout=30) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                if self.cfg.smtp_user and self.cfg.smtp_pass:
                    server.login(self.cfg.smtp_user, self.cfg.smtp_pass)
                server.sendmail(self.cfg.email_from, [vendor.email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            log.error("rfp_email_failed", rfp_id=rfp.id, to=vendor.email, error=str(e))
            return False
        log.info("rfp_email_sent", rfp_id=rfp.id, to=vendor.email)
        return True


def default_sender(cfg: Settings, store: Storage) -> EmailSender:
    if cfg.smtp_host:
        return SmtpSender(cfg)
    return OutboxSender(store)
