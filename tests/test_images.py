import httpx
import pytest

from oppboard.config import Config, ConfigError
from oppboard.errors import UpstreamError
from oppboard.images import ImageHostClient


@pytest.fixture()
def image_config(temp_config: Config) -> Config:
    temp_config.image_host_cloud_name = "demo"
    temp_config.image_host_upload_preset = "unsigned"
    return temp_config


def test_upload_returns_secure_url(image_config: Config) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/demo/logo.png"})

    transport = httpx.MockTransport(handler)
    client = ImageHostClient(image_config, client=httpx.Client(transport=transport))

    url = client.upload(b"\x89PNG", "logo.png")

    assert url == "https://res.cloudinary.com/demo/logo.png"
    assert str(seen[0].url) == "https://api.cloudinary.com/v1_1/demo/image/upload"
    body = seen[0].read()
    assert b'name="upload_preset"' in body
    assert b"unsigned" in body
    assert b'filename="logo.png"' in body


def test_upload_failure_raises_upstream_error(image_config: Config) -> None:
    client = ImageHostClient(
        image_config,
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
    )

    with pytest.raises(UpstreamError):
        client.upload(b"data", "logo.png")


def test_response_without_url_raises_upstream_error(image_config: Config) -> None:
    client = ImageHostClient(
        image_config,
        client=httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        ),
    )

    with pytest.raises(UpstreamError):
        client.upload(b"data", "logo.png")


def test_missing_configuration_raises_config_error(temp_config: Config) -> None:
    with pytest.raises(ConfigError):
        ImageHostClient(temp_config)
