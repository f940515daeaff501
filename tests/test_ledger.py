import threading

import httpx
import pytest

from taxtrack.api_client import TaxTrackApiClient
from taxtrack.errors import PersistenceError
from taxtrack.ledger import Ledger, RemoteLedger
from taxtrack.storage import STORAGE_KEYS, LocalStore


def make_ledger(tmp_path):
    return Ledger(LocalStore(str(tmp_path / "store.json")))


def test_add_transaction(tmp_path):
    ledger = make_ledger(tmp_path)
    tx = ledger.add("VAT", 375.04, "Fuel purchase", date="2024-01-01")
    assert len(ledger.list()) == 1
    assert tx.id
    assert tx.type == "VAT"
    assert tx.amount == 375.04
    assert tx.date == "2024-01-01"
    assert tx.created_at


def test_add_defaults_date_and_details(tmp_path):
    ledger = make_ledger(tmp_path)
    tx = ledger.add("Consumption", 1200)
    assert len(tx.date) == 10
    assert tx.details == "Manual Entry"


def test_add_rejects_bad_type_and_negative_amount(tmp_path):
    ledger = make_ledger(tmp_path)
    with pytest.raises(ValueError):
        ledger.add("Income", 100)
    with pytest.raises(ValueError):
        ledger.add("VAT", -1)
    assert ledger.list() == []


def test_list_is_a_copy_in_insertion_order(tmp_path):
    ledger = make_ledger(tmp_path)
    a = ledger.add("PAYE", 54000)
    b = ledger.add("VAT", 75)
    listed = ledger.list()
    assert [t.id for t in listed] == [a.id, b.id]
    listed.clear()
    assert len(ledger.list()) == 2


def test_summary(tmp_path):
    ledger = make_ledger(tmp_path)
    ledger.add("PAYE", 54000)
    ledger.add("VAT", 112.5)
    ledger.add("VAT", 75.25)
    ledger.add("Consumption", 12000)
    summary = ledger.summary()
    assert summary == {
        "paye": 54000.0,
        "vat": 187.75,
        "consumption": 12000.0,
        "total": 66187.75,
        "count": 4,
    }


def test_by_type(tmp_path):
    ledger = make_ledger(tmp_path)
    ledger.add("PAYE", 54000)
    ledger.add("VAT", 75)
    assert [t.type for t in ledger.by_type("VAT")] == ["VAT"]


def test_load_transactions(tmp_path):
    ledger = make_ledger(tmp_path)
    tx = ledger.add("VAT", 75.0, "Receipt")
    new_ledger = make_ledger(tmp_path)
    assert len(new_ledger.list()) == 1
    assert new_ledger.list()[0].id == tx.id
    assert new_ledger.list()[0].amount == 75.0


def test_load_skips_invalid_records(tmp_path):
    store = LocalStore(str(tmp_path / "store.json"))
    store.set_json(STORAGE_KEYS["TRANSACTIONS"], [
        {"id": "a", "type": "VAT", "amount": 10, "details": "ok", "date": "2024-01-01", "createdAt": "x"},
        {"id": "b", "type": "Bogus", "amount": 10},
        {"id": "c", "type": "VAT", "amount": -4},
        "not a dict",
    ])
    ledger = Ledger(store)
    assert [t.id for t in ledger.list()] == ["a"]


def test_delete(tmp_path):
    ledger = make_ledger(tmp_path)
    tx = ledger.add("VAT", 75)
    assert ledger.delete(tx.id) is True
    assert ledger.delete(tx.id) is False
    assert make_ledger(tmp_path).list() == []


def test_persistence_failure_keeps_memory_state(tmp_path, monkeypatch):
    ledger = make_ledger(tmp_path)

    def broken(*args, **kwargs):
        raise PersistenceError("disk full")

    monkeypatch.setattr(ledger.store, "set_json", broken)
    tx = ledger.add("VAT", 75)
    assert ledger.list() == [tx]
    assert "disk full" in ledger.last_error

    second = ledger.add("Consumption", 500)
    assert ledger.list() == [tx, second]


def test_sessions_sharing_a_store_keep_each_others_transactions(tmp_path):
    first = make_ledger(tmp_path)
    second = make_ledger(tmp_path)
    first.add("VAT", 75, "from session A")
    second.add("VAT", 150, "from session B")

    reloaded = make_ledger(tmp_path).list()
    assert [t.details for t in reloaded] == ["from session A", "from session B"]

    assert second.delete(reloaded[0].id) is True
    first.add("Consumption", 900, "after delete")
    assert [t.details for t in make_ledger(tmp_path).list()] == ["from session B", "after delete"]


def test_concurrent_adds_from_separate_sessions(tmp_path):
    ledgers = [make_ledger(tmp_path) for _ in range(4)]

    def worker(ledger):
        for _ in range(10):
            ledger.add("Consumption", 500)

    threads = [threading.Thread(target=worker, args=(lg,)) for lg in ledgers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    txs = make_ledger(tmp_path).list()
    assert len(txs) == 40
    assert len({t.id for t in txs}) == 40


def test_ids_are_unique(tmp_path):
    ledger = make_ledger(tmp_path)
    ids = {ledger.add("Consumption", 100 + i).id for i in range(50)}
    assert len(ids) == 50


def test_concurrent_adds_each_create_one_transaction(tmp_path):
    ledger = make_ledger(tmp_path)

    def worker():
        for _ in range(10):
            ledger.add("Consumption", 500)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    txs = ledger.list()
    assert len(txs) == 40
    assert len({t.id for t in txs}) == 40
    assert len(make_ledger(tmp_path).list()) == 40


def remote_client(handler, token="tok"):
    return TaxTrackApiClient("http://backend.test", token=token, transport=httpx.MockTransport(handler))


def test_remote_add_caches_stored_record():
    posted = []

    def handler(request):
        if request.method == "POST" and request.url.path == "/api/tax":
            posted.append(request)
            return httpx.Response(201, json={
                "_id": "srv-1", "date": "2024-02-01", "type": "VAT",
                "amount": 75, "details": "Fuel", "createdAt": "2024-02-01T10:00:00Z",
            })
        return httpx.Response(200, json=[])

    ledger = RemoteLedger(remote_client(handler))
    tx = ledger.add("VAT", 75, "Fuel", date="2024-02-01")
    assert tx.id == "srv-1"
    assert posted[0].headers["Authorization"] == "Bearer tok"
    assert [t.id for t in ledger.transactions] == ["srv-1"]


def test_remote_add_falls_back_to_cache_on_network_error():
    def handler(request):
        raise httpx.ConnectError("backend down")

    ledger = RemoteLedger(remote_client(handler))
    tx = ledger.add("Consumption", 12000, "Subtotal")
    assert ledger.transactions == [tx]
    assert ledger.last_error


def test_remote_add_caches_local_record_when_backend_sends_a_list():
    def handler(request):
        return httpx.Response(201, json=[{"ok": True}])

    ledger = RemoteLedger(remote_client(handler))
    first = ledger.add("VAT", 75, "Fuel")
    second = ledger.add("Consumption", 12000, "Subtotal")
    assert ledger.transactions == [first, second]
    assert first.details == "Fuel"
    assert ledger.last_error


def test_remote_upload_receipt_with_odd_body_adds_nothing():
    ledger = RemoteLedger(remote_client(lambda request: httpx.Response(200, json=[{"id": "x"}])))
    assert ledger.upload_receipt("receipt.png", b"\x89PNG") == []
    assert ledger.transactions == []
    assert ledger.last_error


def test_remote_list_refreshes_and_invalidate_clears():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=[
            {"id": "1", "type": "PAYE", "amount": 54000, "date": "2024-01-01", "details": "Salary"},
            {"id": "2", "type": "VAT", "amount": 75, "date": "2024-01-02", "details": "Fuel"},
        ])

    ledger = RemoteLedger(remote_client(handler))
    assert len(ledger.list()) == 2
    assert ledger.summary()["total"] == 54075.0
    ledger.list()
    assert calls == ["/api/tax"]
    ledger.invalidate()
    assert ledger.transactions == []
    assert ledger.loaded is False


def test_remote_list_without_token_does_not_call_backend():
    def handler(request):
        raise AssertionError("should not be called")

    ledger = RemoteLedger(remote_client(handler, token=None))
    assert ledger.list() == []


def test_remote_upload_receipt_caches_transactions():
    def handler(request):
        assert request.url.path == "/api/receipts"
        return httpx.Response(200, json={"transactions": [
            {"id": "r1", "type": "VAT", "amount": 112.5, "details": "Total VAT"},
        ]})

    ledger = RemoteLedger(remote_client(handler))
    added = ledger.upload_receipt("receipt.png", b"\x89PNG", "VAT")
    assert [t.id for t in added] == ["r1"]
    assert ledger.transactions == added
