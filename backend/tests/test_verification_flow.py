"""
VerificationFlow: two-step contact verification with the demo code provider.
"""
from __future__ import annotations

import asyncio

import pytest

from identity_access.codes import OneTimeCodeProvider, StaticCodeProvider
from identity_access.directory import IdentityDirectory
from identity_access.domain import (
    AttemptCompletedError,
    CodeDeliveryError,
    ContactMethod,
    InvalidCodeError,
    RequestInFlightError,
    Role,
    ValidationError,
)
from identity_access.stores import SessionStore
from identity_access.verification import VerificationFlow, VerificationStep

pytestmark = pytest.mark.anyio("asyncio")


class _GatedProvider(StaticCodeProvider):
    """Static provider whose issue/check wait until released."""

    def __init__(self, accept: bool = True):
        super().__init__()
        self.release = asyncio.Event()
        self.accept = accept

    async def issue(self, attempt_id, method, contact):
        await self.release.wait()
        await super().issue(attempt_id, method, contact)
        return self.accept

    async def check(self, attempt_id, code):
        await self.release.wait()
        return await super().check(attempt_id, code)


def _flow(provider=None):
    store = SessionStore(IdentityDirectory())
    return store, VerificationFlow(store, provider or StaticCodeProvider())


async def test_blank_email_is_rejected_and_step_unchanged():
    store, flow = _flow()
    with pytest.raises(ValidationError) as exc:
        await flow.request_code("email", "   ")
    assert exc.value.field == "email"
    assert exc.value.message == "Please enter a valid email address."
    assert flow.step is VerificationStep.AWAITING_CONTACT
    assert flow.code_sent is False
    assert store.state.identity is None


async def test_blank_phone_message():
    _, flow = _flow()
    with pytest.raises(ValidationError) as exc:
        await flow.request_code(ContactMethod.PHONE, "")
    assert exc.value.message == "Please enter a valid phone number."


async def test_demo_code_signs_in_and_completes_attempt():
    store, flow = _flow()
    await flow.request_code("email", " a@example.com ")
    assert flow.step is VerificationStep.AWAITING_CODE
    assert flow.code_sent is True
    assert flow.pending_contact == "a@example.com"

    ident = await flow.verify_code("123456")
    assert ident is not None
    assert ident.email == "a@example.com"
    assert ident.role is Role.USER
    assert store.state.identity == ident
    assert flow.completed is True

    with pytest.raises(AttemptCompletedError):
        await flow.verify_code("123456")
    with pytest.raises(AttemptCompletedError):
        await flow.request_code("email", "a@example.com")


async def test_wrong_code_keeps_code_step():
    store, flow = _flow()
    await flow.request_code("phone", "+1 555 0100")
    for bad in ("000000", "12345a", "1234567", ""):
        with pytest.raises(InvalidCodeError):
            await flow.verify_code(bad)
    assert flow.step is VerificationStep.AWAITING_CODE
    assert store.state.identity is None
    ident = await flow.verify_code("123456")
    assert ident.phone == "+15550100"


async def test_verify_before_request_is_rejected():
    _, flow = _flow()
    with pytest.raises(ValidationError) as exc:
        await flow.verify_code("123456")
    assert exc.value.code == "code_not_requested"


async def test_reset_returns_to_contact_step_and_keeps_inputs():
    _, flow = _flow()
    await flow.request_code("email", "a@example.com")
    flow.code = "12"
    flow.reset()
    assert flow.step is VerificationStep.AWAITING_CONTACT
    assert flow.code == ""
    assert flow.code_sent is False
    assert flow.email == "a@example.com"
    with pytest.raises(ValidationError):
        await flow.verify_code("123456")


async def test_switching_method_keeps_both_contacts():
    _, flow = _flow()
    with pytest.raises(ValidationError):
        await flow.request_code("phone", "")
    await flow.request_code("email", "a@example.com")
    flow.reset()
    await flow.request_code("phone", "+15550100")
    assert flow.email == "a@example.com"
    assert flow.phone == "+15550100"
    assert flow.contact_method is ContactMethod.PHONE


async def test_second_request_while_busy_is_rejected():
    provider = _GatedProvider()
    _, flow = _flow(provider)
    first = asyncio.create_task(flow.request_code("email", "a@example.com"))
    await asyncio.sleep(0)
    assert flow.busy is True
    with pytest.raises(RequestInFlightError):
        await flow.request_code("email", "a@example.com")
    provider.release.set()
    await first
    assert flow.busy is False
    assert flow.step is VerificationStep.AWAITING_CODE


async def test_reset_discards_in_flight_code_request():
    provider = _GatedProvider()
    _, flow = _flow(provider)
    pending = asyncio.create_task(flow.request_code("email", "a@example.com"))
    await asyncio.sleep(0)
    flow.reset()
    provider.release.set()
    await pending
    assert flow.step is VerificationStep.AWAITING_CONTACT
    assert flow.code_sent is False


async def test_closed_store_discards_verification_result():
    provider = _GatedProvider()
    store, flow = _flow(provider)
    provider.release.set()
    await flow.request_code("email", "a@example.com")
    provider.release.clear()
    pending = asyncio.create_task(flow.verify_code("123456"))
    await asyncio.sleep(0)
    store.close()
    provider.release.set()
    assert await pending is None
    assert store.state.identity is None
    assert flow.completed is False


async def test_refused_delivery_raises_and_stays_on_contact_step():
    provider = _GatedProvider(accept=False)
    provider.release.set()
    _, flow = _flow(provider)
    with pytest.raises(CodeDeliveryError):
        await flow.request_code("email", "a@example.com")
    assert flow.step is VerificationStep.AWAITING_CONTACT


async def test_resend_in_code_step_keeps_attempt():
    _, flow = _flow()
    await flow.request_code("email", "a@example.com")
    await flow.request_code("email", "a@example.com")
    assert flow.step is VerificationStep.AWAITING_CODE
    assert (await flow.verify_code("123456")) is not None


class _SwitchableSender:
    """Records delivered codes; can be told to refuse further deliveries."""

    def __init__(self):
        self.accept = True
        self.codes: list[str] = []

    def deliver(self, method, contact, code):
        if not self.accept:
            return False
        self.codes.append(code)
        return True


async def test_reissue_to_new_contact_signs_in_new_contact():
    _, flow = _flow()
    await flow.request_code("email", "first@example.com")
    await flow.request_code("phone", "+15550100")
    assert flow.pending_contact == "+15550100"
    ident = await flow.verify_code("123456")
    assert ident.phone == "+15550100"
    assert ident.email is None


async def test_refused_reissue_keeps_issued_contact():
    sender = _SwitchableSender()
    store, flow = _flow(OneTimeCodeProvider(sender))
    await flow.request_code("email", "first@example.com")
    first_code = sender.codes[-1]

    sender.accept = False
    with pytest.raises(CodeDeliveryError):
        await flow.request_code("email", "second@example.com")
    assert flow.step is VerificationStep.AWAITING_CODE
    assert flow.pending_contact == "first@example.com"

    ident = await flow.verify_code(first_code)
    assert ident.email == "first@example.com"
    assert store.state.identity == ident


async def test_blank_reissue_keeps_issued_contact():
    _, flow = _flow()
    await flow.request_code("email", "a@example.com")
    with pytest.raises(ValidationError):
        await flow.request_code("phone", "")
    assert flow.step is VerificationStep.AWAITING_CODE
    assert flow.pending_method is ContactMethod.EMAIL
    ident = await flow.verify_code("123456")
    assert ident.email == "a@example.com"


async def test_reset_clears_issued_contact():
    _, flow = _flow()
    await flow.request_code("email", "a@example.com")
    flow.reset()
    assert flow.pending_contact == ""
    assert flow.pending_method is None
