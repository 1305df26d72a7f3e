import pytest


@pytest.fixture(autouse=True)
def _test_environment(settings, tmp_path):
    # Prevent SecurityMiddleware from forcing https://testserver/...
    settings.SECURE_SSL_REDIRECT = False

    # Prevent "secure cookie" behavior from interfering with session auth in tests
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Uploaded customer files land in a per-test directory
    settings.MEDIA_ROOT = str(tmp_path / "media")

    # E-mail delivery is opt-in per test
    settings.CRM_EMAIL_NOTIFICATIONS = False
