"""
Email Service for Go Make Your Picks

Sends magic links, pick reminders, lock notices, round results and admin
login links. Sending is fire-and-forget: failures are logged and reported
as False, never raised to the caller.
"""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

from app.utils.timezone_utils import format_lock_time

logger = logging.getLogger(__name__)


class EmailService:
    """Handles all email sending functionality"""

    def __init__(self):
        self.smtp_server = current_app.config.get("MAIL_SERVER")
        self.smtp_port = current_app.config.get("MAIL_PORT", 587)
        self.smtp_username = current_app.config.get("MAIL_USERNAME")
        self.smtp_password = current_app.config.get("MAIL_PASSWORD")
        self.from_email = current_app.config.get("FROM_EMAIL") or "noreply@gomakeyourpicks.com"
        self.from_name = current_app.config.get("FROM_NAME", "Go Make Your Picks")
        self.use_tls = current_app.config.get("MAIL_USE_TLS", True)
        self.app_url = current_app.config.get("APP_URL", "").rstrip("/")

    def _create_message(self, to_email, subject, body_text, body_html=None):
        """Create email message"""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        msg.attach(MIMEText(body_text, "plain"))
        if body_html:
            msg.attach(MIMEText(body_html, "html"))

        return msg

    def _send_email(self, message):
        """Send email message, returning whether it was handed to the server"""
        if not self.smtp_server:
            logger.info(f"Mail server not configured, skipped email to {message['To']}: {message['Subject']}")
            return False

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_email, [message["To"]], message.as_string())

            logger.info(f"Email sent successfully to {message['To']}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {message['To']}: {str(e)}")
            return False

    def pick_url(self, token):
        return f"{self.app_url}/pick/{token}"

    def send_magic_link_email(self, to_email, names, round_obj, token):
        """Invite one or more participants sharing an address to pick"""
        link = self.pick_url(token)
        lock_time = format_lock_time(round_obj.lock_time, round_obj.timezone)
        greeting = " & ".join(names)
        subject = f"Make your pick: {round_obj.sport_name}"

        body_text = f"""
        Hi {greeting},

        Picks are open for {round_obj.sport_name}.
        {round_obj.email_message or ''}

        Make your pick here: {link}

        Picks lock {lock_time}.
        """

        body_html = f"""
        <html>
        <body>
            <h2>{html.escape(round_obj.sport_name)}</h2>
            <p>Hi {html.escape(greeting)},</p>
            <p>{html.escape(round_obj.email_message or '')}</p>
            <p><a href="{link}">Make your pick</a></p>
            <p>Picks lock {html.escape(lock_time)}.</p>
        </body>
        </html>
        """

        message = self._create_message(to_email, subject, body_text, body_html)
        return self._send_email(message)

    def send_reminder_email(self, to_email, names, round_obj, token, reminder_text):
        """Nudge participants who haven't picked yet, with a fresh link"""
        link = self.pick_url(token)
        lock_time = format_lock_time(round_obj.lock_time, round_obj.timezone)
        greeting = " & ".join(names)
        subject = f"Reminder: make your pick for {round_obj.sport_name}"

        body_text = f"""
        Hi {greeting},

        {reminder_text}
        {round_obj.email_message or ''}

        Make your pick here: {link}

        Picks lock {lock_time}.
        """

        body_html = f"""
        <html>
        <body>
            <h2>{html.escape(round_obj.sport_name)}</h2>
            <p>Hi {html.escape(greeting)},</p>
            <p><strong>{html.escape(reminder_text)}</strong></p>
            <p>{html.escape(round_obj.email_message or '')}</p>
            <p><a href="{link}">Make your pick</a></p>
            <p>Picks lock {html.escape(lock_time)}.</p>
        </body>
        </html>
        """

        message = self._create_message(to_email, subject, body_text, body_html)
        return self._send_email(message)

    def send_locked_notification_email(self, to_email, names, round_obj):
        subject = f"{round_obj.sport_name} picks are now locked"
        greeting = " & ".join(names)
        body_text = f"""
        Hi {greeting},

        The deadline to pick for {round_obj.sport_name} has passed, so picks can
        no longer be submitted.

        Follow the standings here: {self.app_url}
        """
        message = self._create_message(to_email, subject, body_text)
        return self._send_email(message)

    def send_round_completed_email(self, user, round_obj, results, points):
        """Tell a participant how a round finished and what they earned"""
        subject = f"Results are in: {round_obj.sport_name}"
        lines = "\n".join(f"        {place}. {name}" for place, name in results)

        body_text = f"""
        Hi {user.name},

        {round_obj.sport_name} is complete.

{lines}

        You earned {points} point(s).
        """

        items = "".join(
            f"<li>{place}. {html.escape(name)}</li>" for place, name in results
        )
        body_html = f"""
        <html>
        <body>
            <h2>{html.escape(round_obj.sport_name)} is complete</h2>
            <p>Hi {html.escape(user.name)},</p>
            <ol>{items}</ol>
            <p>You earned <strong>{points}</strong> point(s).</p>
        </body>
        </html>
        """

        message = self._create_message(user.email, subject, body_text, body_html)
        return self._send_email(message)

    def send_admin_login_email(self, admin, token):
        link = f"{self.app_url}/admin/login/{token}"
        subject = f"{self.from_name} admin login"
        body_text = f"""
        Hi {admin.name},

        Use this link to sign in: {link}

        It expires in {current_app.config.get('ADMIN_MAGIC_LINK_EXPIRY_MINUTES', 10)} minutes.
        If you didn't request it, you can ignore this email.
        """
        message = self._create_message(admin.email, subject, body_text)
        return self._send_email(message)
