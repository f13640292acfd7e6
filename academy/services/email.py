"""Email service for sending transactional emails."""

import os
import logging
import smtplib
import socket
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

logger = logging.getLogger(__name__)


class EmailService:
    """
    Email service for application confirmations and admin notices.

    Uses SMTP when configured; otherwise runs in dev mode and only logs
    what would have been sent.
    """

    def __init__(self):
        self.smtp_host = os.getenv('SMTP_HOST', 'smtp.gmail.com')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_user = os.getenv('SMTP_USER', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.from_email = os.getenv('FROM_EMAIL', self.smtp_user)
        self.from_name = os.getenv('FROM_NAME', 'Teen Leadership Academy')
        self.admin_email = os.getenv('ADMIN_NOTIFY_EMAIL', '')
        self.smtp_timeout = int(os.getenv('SMTP_TIMEOUT', '10'))

    @property
    def is_configured(self):
        return bool(self.smtp_user and self.smtp_password)

    def _create_connection(self):
        """Create SMTP connection with timeout."""
        server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
        server.starttls()
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
        return server

    def send_email(self, to_email, subject, html_content, text_content=None):
        """
        Send an email.

        Returns:
            bool: True if sent (or logged in dev mode), False otherwise
        """
        if not self.is_configured:
            logger.info(f"[dev mode] Email to {to_email}: {subject}")
            return True

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            server = self._create_connection()
            server.sendmail(self.from_email, to_email, msg.as_string())
            server.quit()

            logger.info(f"Sent email to {to_email}: {subject}")
            return True

        except socket.timeout:
            logger.error(f"SMTP connection timed out after {self.smtp_timeout}s")
            return False
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def send_challenger_confirmation(self, to_email, full_name):
        subject = "Welcome to the Challenge - Teen Leadership Academy"
        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
            <h1 style="color: #1e3a8a;">Welcome, {full_name}!</h1>
            <p>Thank you for signing up as a Challenger. Our team will be in touch
            with the next steps and your course schedule.</p>
            <p>- The Academy Team</p>
        </body>
        </html>
        """
        text_content = (
            f"Welcome, {full_name}!\n\n"
            "Thank you for signing up as a Challenger. Our team will be in touch "
            "with the next steps and your course schedule.\n\n- The Academy Team"
        )
        return self.send_email(to_email, subject, html_content, text_content)

    def send_teacher_application_received(self, to_email, full_name):
        subject = "We received your application - Teen Leadership Academy"
        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
            <h1 style="color: #1e3a8a;">Thank you, {full_name}</h1>
            <p>Your application to teach with us has been received. We review every
            application and will reply within two weeks.</p>
            <p>- The Academy Team</p>
        </body>
        </html>
        """
        text_content = (
            f"Thank you, {full_name}\n\n"
            "Your application to teach with us has been received. We review every "
            "application and will reply within two weeks.\n\n- The Academy Team"
        )
        sent = self.send_email(to_email, subject, html_content, text_content)

        if self.admin_email:
            self.send_email(
                self.admin_email,
                f"New teacher application: {full_name}",
                f"<p>{full_name} ({to_email}) applied to teach.</p>",
                f"{full_name} ({to_email}) applied to teach."
            )
        return sent

    def send_application_decision(self, to_email, full_name, status):
        approved = status == 'approved'
        subject = "Your teacher application - Teen Leadership Academy"
        message = (
            "Congratulations! Your application has been approved. You can now sign in to the teacher portal."
            if approved else
            "Thank you for your interest. After careful review we are unable to offer a teaching position at this time."
        )
        html_content = f"<html><body><p>Dear {full_name},</p><p>{message}</p><p>- The Academy Team</p></body></html>"
        text_content = f"Dear {full_name},\n\n{message}\n\n- The Academy Team"
        return self.send_email(to_email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()
