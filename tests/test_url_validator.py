import pytest

from api_chaining.executor.url_validator import UrlValidationError, validate_url


@pytest.mark.parametrize("url", [
    "https://api.example.com/v1/users",
    "http://api.example.com:8025/x",
    "https://93.184.216.34/",
])
def test_public_urls_allowed(url):
    validate_url(url)


@pytest.mark.parametrize("url, message", [
    ("file:///etc/passwd", "Protocol not allowed"),
    ("ftp://files.example.com/", "Protocol not allowed"),
    ("not a url", "Protocol not allowed"),
    ("http://localhost/", "restricted keyword"),
    ("http://service.internal/", "restricted keyword"),
    ("http://metadata.google.com/", "restricted keyword"),
    ("http://10.0.0.5/", "private"),
    ("http://192.168.1.1/", "private"),
    ("http://169.254.169.254/latest", "private"),
    ("http://[::1]/", "private"),
    ("https://api.example.com:6379/", "Port 6379"),
    ("http://api.example.com:22/", "Port 22"),
    ("http://api.example.com:99999/", "Invalid URL"),
])
def test_blocked(url, message):
    with pytest.raises(UrlValidationError, match=message):
        validate_url(url)


def test_private_allowed_when_configured():
    validate_url("http://localhost:8080/", allow_private_networks=True)
    validate_url("http://10.0.0.5/", allow_private_networks=True)


def test_ports_blocked_even_when_private_allowed():
    with pytest.raises(UrlValidationError, match="Port 5432"):
        validate_url("http://10.0.0.5:5432/", allow_private_networks=True)
