from datetime import datetime

from flask import current_app, render_template
from flask_mail import Mail, Message

mail = Mail()


class Mailer:
    """OTP and invite mail through Flask-Mail, rendered from templates/email."""

    def _sender(self):
        cfg = current_app.config
        return (cfg.get("MAIL_FROM_NAME") or "Exun Clan", cfg.get("MAIL_DEFAULT_SENDER"))

    def send(self, to, subject, html):
        msg = Message(subject, recipients=[to], html=html, sender=self._sender())
        try:
            mail.send(msg)
            return True
        except Exception as e:
            current_app.logger.error(f"Email send failed for {to}: {e}")
            return False

    def send_otp(self, to, otp, school_code=None):
        html = render_template(
            "email/otp.html",
            otp=otp,
            otp_digits=list(otp),
            school_code=school_code or otp,
        )
        subject = f"Exun Registration Permanent Authentication Code - {otp}"
        sent = self.send(to, subject, html)
        if sent:
            current_app.logger.info(f"OTP email sent to {to}")
        return sent

    def send_invite(self, to, school_name="", principal_name="", custom_message=""):
        now = datetime.now()
        html = render_template(
            "email/invite.html",
            school_name=school_name or "School",
            principal_name=principal_name,
            custom_message=custom_message,
            current_year=now.year,
            current_date=now.strftime("%B %d, %Y").replace(" 0", " "),
        )
        return self.send(to, f"Exun {now.year} Registration Invite", html)
