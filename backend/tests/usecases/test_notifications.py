import pytest
from chakai.domain.errors import EventNotFoundError, InvalidMailError
from chakai.usecases import notifications as uc
from chakai.usecases import reservations as res_uc
from fakes import FakeGateway, Store


async def _book(store: Store, event_id: int, email: str) -> None:
    await res_uc.create_reservation(
        store.events_repo,
        store.slot_repo,
        store.res_repo,
        event_id=event_id,
        time_slot_id=store.slots_of(event_id)[0].id,
        participants=1,
        contact=res_uc.Contact(name=email.split("@")[0], email=email, phone="0"),
    )


@pytest.mark.asyncio
async def test_send_mail_dedupes_recipients() -> None:
    gateway = FakeGateway()
    message_id, to = await uc.send_mail(
        gateway, recipients=["a@example.com", " a@example.com", "b@example.com", ""], subject="s", body="b"
    )
    assert message_id == "msg-1"
    assert to == ["a@example.com", "b@example.com"]
    assert gateway.calls == [(["a@example.com", "b@example.com"], "s", "b")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("recipients", "subject", "body"),
    [([], "s", "b"), (["a@example.com"], " ", "b"), (["a@example.com"], "s", "")],
)
async def test_send_mail_rejects_incomplete_message(recipients: list[str], subject: str, body: str) -> None:
    gateway = FakeGateway()
    with pytest.raises(InvalidMailError):
        await uc.send_mail(gateway, recipients=recipients, subject=subject, body=body)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_send_event_mail_defaults_to_all_holders() -> None:
    store = Store()
    event = store.add_event()
    for email in ["a@example.com", "b@example.com", "a@example.com"]:
        await _book(store, event.id, email)
    gateway = FakeGateway()
    _, to = await uc.send_event_mail(
        gateway, store.events_repo, store.res_repo, event_id=event.id, recipients=None, subject="s", body="b"
    )
    assert to == ["a@example.com", "b@example.com"]


@pytest.mark.asyncio
async def test_send_event_mail_rejects_outsiders() -> None:
    store = Store()
    event = store.add_event()
    await _book(store, event.id, "a@example.com")
    gateway = FakeGateway()
    with pytest.raises(InvalidMailError):
        await uc.send_event_mail(
            gateway,
            store.events_repo,
            store.res_repo,
            event_id=event.id,
            recipients=["a@example.com", "x@example.com"],
            subject="s",
            body="b",
        )
    with pytest.raises(EventNotFoundError):
        await uc.send_event_mail(
            gateway, store.events_repo, store.res_repo, event_id=99, recipients=None, subject="s", body="b"
        )


@pytest.mark.asyncio
async def test_send_event_mail_matches_holders_case_insensitively() -> None:
    store = Store()
    event = store.add_event()
    await _book(store, event.id, "Sato@Example.com")
    await _book(store, event.id, "sato@example.com")
    gateway = FakeGateway()

    _, everyone = await uc.send_event_mail(
        gateway, store.events_repo, store.res_repo, event_id=event.id, recipients=None, subject="s", body="b"
    )
    assert everyone == ["Sato@Example.com"]

    _, chosen = await uc.send_event_mail(
        gateway,
        store.events_repo,
        store.res_repo,
        event_id=event.id,
        recipients=["SATO@example.com"],
        subject="s",
        body="b",
    )
    assert chosen == ["SATO@example.com"]
