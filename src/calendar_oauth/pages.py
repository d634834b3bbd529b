"""
Static HTML pages shown in the browser tab after the OAuth redirect.

Three outcomes are distinguished: success, ordinary failure, and a security
violation (CSRF state mismatch). The pages are module constants so they
ship with the package and need no files at runtime.
"""

from markupsafe import escape

_PAGE_STYLE = (
    "font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;"
)

SUCCESS_PAGE = f"""<!DOCTYPE html>
<html>
<head><title>Calendar Connected</title></head>
<body style="{_PAGE_STYLE}">
    <h1 style="color: #4caf50;">Calendar Connected</h1>
    <p>Your Google Calendar has been connected successfully.</p>
    <p style="margin-top: 30px; color: #666;">You can close this window and return to the app.</p>
</body>
</html>"""

ERROR_PAGE_TEMPLATE = f"""<!DOCTYPE html>
<html>
<head><title>Authorization Failed</title></head>
<body style="{_PAGE_STYLE}">
    <h1 style="color: #d32f2f;">Authorization Failed</h1>
    <p>The calendar could not be connected.</p>
    <p><strong>Error:</strong> {{error_message}}</p>
    <p style="margin-top: 30px; color: #666;">You can close this window and try again from the app.</p>
</body>
</html>"""

SECURITY_ERROR_PAGE = f"""<!DOCTYPE html>
<html>
<head><title>Security Warning</title></head>
<body style="{_PAGE_STYLE}">
    <h1 style="color: #d32f2f;">Security Warning</h1>
    <p>This authorization response did not match the request started by the app.
    It may have been forged by another website, so it was rejected.</p>
    <p>No calendar access was granted. If you did not just start connecting your
    calendar, close this window.</p>
    <p style="margin-top: 30px; color: #666;">You can close this window and try again from the app.</p>
</body>
</html>"""


def render_error_page(error_message: str) -> str:
    """Error page with the provider's error code (HTML-escaped)."""
    return ERROR_PAGE_TEMPLATE.format(error_message=escape(error_message))
