"""
Stateless email authentication.

The auth token for an address is sha256(email + AUTH_SALT); the one-time
code mailed to the user is derived from the token's last six hex digits, so
the same address always receives the same code and nothing needs storing.
"""
import hashlib
import hmac

EMAIL_COOKIE = "email"
TOKEN_COOKIE = "auth_token"


def normalize_email(email):
    return (email or "").strip().lower()


class OTPAuthenticator:
    def __init__(self, salt: str):
        if not salt:
            raise ValueError("AUTH_SALT must be set")
        self.salt = salt

    def token_for(self, email: str) -> str:
        data = normalize_email(email) + self.salt
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    def otp_for(self, email: str) -> str:
        last6 = self.token_for(email)[-6:]
        return f"{int(last6, 16) % 1000000:06d}"

    def verify_otp(self, email: str, otp) -> bool:
        if not email or otp is None:
            return False
        return hmac.compare_digest(self.otp_for(email), str(otp).strip())

    def validate_token(self, email: str, token) -> bool:
        if not email or not token:
            return False
        return hmac.compare_digest(self.token_for(email), str(token))

    def authenticated_email(self, request):
        """The cookie email when its auth_token matches, otherwise None."""
        email = request.cookies.get(EMAIL_COOKIE)
        token = request.cookies.get(TOKEN_COOKIE)
        if self.validate_token(email, token):
            return normalize_email(email)
        return None

    def set_cookies(self, response, email, max_age, secure):
        for name, value in ((EMAIL_COOKIE, normalize_email(email)), (TOKEN_COOKIE, self.token_for(email))):
            response.set_cookie(
                name, value, max_age=max_age, path="/",
                httponly=True, secure=secure, samesite="Strict",
            )
        return response

    @staticmethod
    def clear_cookies(response):
        for name in (EMAIL_COOKIE, TOKEN_COOKIE):
            response.set_cookie(name, "", expires=0, path="/", httponly=True)
        return response
