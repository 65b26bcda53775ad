"""Tests for BankIDClient."""

import base64

import pytest

from bankid.classifier import ErrorCode
from bankid.client import BankIDClient
from bankid.config import ClientConfig
from bankid.constants import TEST_URL
from bankid.exceptions import (
    BankIDError,
    ConfigurationError,
    InputInvalidError,
    RequiredInputMissingError,
)
from bankid.models import (
    AuthRequest,
    PhoneAuthRequest,
    PhoneSignRequest,
    Requirement,
    SignRequest,
    Status,
)
from bankid.poller import OrderPoller
from bankid.qr import QRCodeGenerator


@pytest.fixture
def client(api):
    """Client talking to the mock API."""
    return BankIDClient(ClientConfig(url=TEST_URL), transport=api.transport())


class TestConstruction:
    """Tests for client construction."""

    def test_builds_transport_from_certificate(self, p12_bundle):
        """Test a client can be built from certificate material alone."""
        client = BankIDClient(ClientConfig.for_test(p12_bundle))
        assert client.config.url == TEST_URL

    def test_invalid_config(self, p12_bundle):
        """Test configuration is validated."""
        with pytest.raises(ConfigurationError):
            BankIDClient(ClientConfig(timeout=0, certificate=p12_bundle))

    def test_missing_certificate(self):
        """Test a certificate is required without a transport."""
        with pytest.raises(ConfigurationError, match="Certificate"):
            BankIDClient(ClientConfig())


class TestOrders:
    """Tests for starting orders."""

    @pytest.mark.asyncio
    async def test_auth_empty_ip(self, client, api):
        """Test auth with empty IP fails before any network call."""
        with pytest.raises(InputInvalidError):
            await client.auth(AuthRequest(end_user_ip=""))
        assert api.requests == []
        assert client.request_count == 0

    @pytest.mark.asyncio
    async def test_auth(self, client, api, auth_response):
        """Test auth returns a handle with QR inputs."""
        api.add("/auth", 200, auth_response)

        handle = await client.auth(
            AuthRequest(end_user_ip="192.0.2.1", user_visible_data="Log in to Example")
        )

        assert handle.order_ref
        assert handle.auto_start_token
        assert handle.qr_start_token and handle.qr_start_secret
        body = api.bodies("/auth")[0]
        assert body["endUserIp"] == "192.0.2.1"
        assert base64.b64decode(body["userVisibleData"]) == b"Log in to Example"
        assert body["userVisibleDataFormat"] == "simpleMarkdownV1"

    @pytest.mark.asyncio
    async def test_sign(self, client, api, order_ref):
        """Test sign posts to /sign."""
        api.add("/sign", 200, {"orderRef": order_ref})
        handle = await client.sign(
            SignRequest(
                end_user_ip="2001:db8::1",
                user_visible_data="I accept the terms.",
                requirement=Requirement(pin_code=True),
            )
        )
        assert handle.order_ref == order_ref
        assert api.bodies("/sign")[0]["requirement"] == {"pinCode": True}

    @pytest.mark.asyncio
    async def test_phone_auth(self, client, api, order_ref):
        """Test phone auth posts to /phone/auth."""
        api.add("/phone/auth", 200, {"orderRef": order_ref})
        handle = await client.phone_auth(
            PhoneAuthRequest(personal_number="3810260632", call_initiator="user")
        )
        assert not handle.supports_qr
        body = api.bodies("/phone/auth")[0]
        assert body["personalNumber"] == "3810260632"
        assert body["callInitiator"] == "user"

    @pytest.mark.asyncio
    async def test_phone_sign(self, client, api, order_ref):
        """Test phone sign posts to /phone/sign."""
        api.add("/phone/sign", 200, {"orderRef": order_ref})
        await client.phone_sign(
            PhoneSignRequest(
                personal_number="3810260632",
                call_initiator="RP",
                user_visible_data="Confirm transfer of 100 SEK",
            )
        )
        assert api.calls("/phone/sign") == 1

    @pytest.mark.asyncio
    async def test_already_in_progress(self, client, api):
        """Test remote alreadyInProgress is raised with its user message."""
        api.add_error("/auth", 400, "alreadyInProgress")
        with pytest.raises(BankIDError) as exc_info:
            await client.auth(AuthRequest(end_user_ip="192.0.2.1"))
        assert exc_info.value.error.code is ErrorCode.ALREADY_IN_PROGRESS
        assert exc_info.value.error.inform_user


class TestCollectAndCancel:
    """Tests for collect, cancel and poll."""

    @pytest.mark.asyncio
    async def test_collect(self, client, api, make_status, order_ref):
        """Test collect decodes the order status."""
        api.add("/collect", 200, make_status("pending", "userSign"))
        status = await client.collect(order_ref)
        assert status.status is Status.PENDING
        assert api.bodies("/collect") == [{"orderRef": order_ref}]

    @pytest.mark.asyncio
    async def test_collect_unknown_order(self, client, api):
        """Test collect on an unknown order is a non-retryable caller fault."""
        api.add_error("/collect", 400, "invalidParameters", "No such order")
        with pytest.raises(BankIDError) as exc_info:
            await client.collect("00000000-0000-0000-0000-000000000000")
        error = exc_info.value.error
        assert error.code is ErrorCode.INVALID_PARAMETERS
        assert not error.retryable
        assert error.caller_fault

    @pytest.mark.asyncio
    async def test_empty_order_ref(self, client, api):
        """Test collect and cancel require an order reference."""
        with pytest.raises(RequiredInputMissingError):
            await client.collect("")
        with pytest.raises(RequiredInputMissingError):
            await client.cancel("")
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_cancel(self, client, api, order_ref):
        """Test cancel posts the order reference."""
        api.add("/cancel", 200, {})
        assert await client.cancel(order_ref) is None
        assert api.bodies("/cancel") == [{"orderRef": order_ref}]

    @pytest.mark.asyncio
    async def test_poll(self, client, api, make_status, order_ref):
        """Test poll follows an order to completion through collect."""
        api.add("/collect", 200, make_status("pending", "outstandingTransaction"))
        api.add("/collect", 200, make_status("pending", "userSign"))
        api.add("/collect", 200, make_status("complete"))

        poller = client.poll(order_ref, interval=0.01)
        states = [s async for s in poller]

        assert isinstance(poller, OrderPoller)
        assert [s.status for s in states] == [Status.PENDING, Status.PENDING, Status.COMPLETE]
        assert states[-1].completion_data.user.name == "Karl Karlsson"
        assert api.calls("/collect") == 3

    @pytest.mark.asyncio
    async def test_qr_codes(self, client, api, auth_response):
        """Test a QR generator is created from an auth handle."""
        api.add("/auth", 200, auth_response)
        handle = await client.auth(AuthRequest(end_user_ip="192.0.2.1"))
        qr = client.qr_codes(handle)
        assert isinstance(qr, QRCodeGenerator)
        assert qr.current().startswith(f"bankid.{auth_response['qrStartToken']}.0.")

    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self, api):
        """Test leaving the context closes the transport."""
        transport = api.transport()
        async with BankIDClient(ClientConfig(url=TEST_URL), transport=transport):
            pass
        assert transport.is_closed
