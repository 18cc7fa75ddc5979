# server/reminders/infrastructure/notifications/providers/email_provider.py

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Sequence

from reminders.core.config import settings
from reminders.core.utils.html import html_to_text


class EmailProvider:
    """
    Envoi d'e-mails via SMTP (multipart texte + HTML, avec Cc).
    Pré-requis: settings.SMTP_HOST et settings.SMTP_FROM.
    """

    def __init__(self, timeout: float | None = None):
        if not settings.SMTP_HOST:
            raise ValueError("SMTP_HOST not configured")
        if not settings.SMTP_FROM:
            raise ValueError("SMTP_FROM not configured")

        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.sender = settings.SMTP_FROM
        self.timeout = timeout or min(settings.DELIVERY_TIMEOUT_SECONDS, 30.0)

    def build_message(self, *, to: str, subject: str, body: str, cc: Sequence[str] = ()) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        if cc:
            msg["Cc"] = ", ".join(cc)
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(html_to_text(body), "plain", _charset="utf-8"))
        msg.attach(MIMEText(body, "html", _charset="utf-8"))
        return msg

    def send(self, *, to: str, subject: str, body: str, cc: Sequence[str] = ()) -> bool:
        cc = [a for a in dict.fromkeys(cc) if a and a != to]
        msg = self.build_message(to=to, subject=subject, body=body, cc=cc)

        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            refused = server.sendmail(self.sender, [to, *cc], msg.as_string())
            # sendmail ne lève que si TOUS les destinataires sont refusés
            return to not in refused
        finally:
            server.quit()
