"""
Tests for the signing pipeline: canonical bytes, signature packaging, the
transition state machine, broadcast and the ledger-backed record backend.
"""

import hashlib
import hmac
import json

import httpx
import pytest

from ara_vault.errors import (
    AuthenticationFailure,
    NetworkFailure,
    TransitionStateError,
    VersionConflict,
)
from ara_vault.http import HttpCollaborator
from ara_vault.ledger import (
    BroadcastEndpoint,
    Ed25519Signer,
    LedgerRecordBackend,
    PendingStateChange,
    TransactionSigner,
    TransitionKind,
    TransitionState,
    address_from_public_key,
    attach_signature,
    canonical_json,
    double_sha256,
    split_signed_payload,
    verify_signature,
    verify_signer_address,
)
from ara_vault.storage import RecordQuery, document_id


class FakeEndpoint:
    def __init__(self, reference="ref-1", error=None):
        self.reference = reference
        self.error = error
        self.payloads = []

    async def broadcast(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.reference


class ForgingSigner:
    """Claims one key but signs with another."""

    def __init__(self, claimed, actual):
        self.claimed = claimed
        self.actual = actual
        self.key_id = 0
        self.signature_size = 64

    @property
    def public_key(self):
        return self.claimed.public_key

    @property
    def address(self):
        return self.claimed.address

    async def sign(self, digest):
        return await self.actual.sign(digest)

    def verify(self, digest, signature):
        self.claimed.verify(digest, signature)


class TruncatingSigner(ForgingSigner):
    async def sign(self, digest):
        return (await self.actual.sign(digest))[:10]


class WalletSigner:
    """Non-Ed25519 wallet: 33-byte compressed key, 65-byte signatures."""

    key_id = 1
    signature_size = 65

    def __init__(self, secret=b"wallet-secret"):
        self.secret = secret
        self.public_key = b"\x02" + hashlib.sha256(secret).digest()
        self.address = address_from_public_key(self.public_key)

    async def sign(self, digest):
        return hmac.new(self.secret, digest, hashlib.sha512).digest() + b"\x1b"

    def verify(self, digest, signature):
        expected = hmac.new(self.secret, digest, hashlib.sha512).digest() + b"\x1b"
        if not hmac.compare_digest(signature, expected):
            raise AuthenticationFailure("wallet signature mismatch")


def make_change(**payload):
    return PendingStateChange(
        kind=TransitionKind.CREATE,
        payload=payload or {"document": {"tokenId": "42", "version": 1}},
        identity_id="identity-1",
    )


class TestCanonicalEncoding:

    def test_key_order_does_not_matter(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})

    def test_compact_utf8(self):
        assert canonical_json({"k": "é", "n": None}) == '{"k":"é","n":null}'.encode("utf-8")

    def test_bytes_become_base64(self):
        assert canonical_json({"b": b"\x00\xff"}) == b'{"b":"AP8="}'

    def test_floats_rejected(self):
        with pytest.raises(ValueError):
            canonical_json({"x": 1.5})

    def test_double_sha256(self):
        assert double_sha256(b"abc") != double_sha256(b"abd")
        assert len(double_sha256(b"")) == 32


class TestSignaturePackaging:

    def test_layout(self):
        signable = b'{"kind":1}'
        signature = bytes(range(64))
        payload = attach_signature(signable, signature, key_id=7)

        assert len(payload) == len(signable) + 1 + len(signature)
        assert payload[: len(signable)] == signable
        assert payload[len(signable)] == 7
        assert payload[len(signable) + 1:] == signature

    def test_split_inverts_attach(self):
        payload = attach_signature(b"signable", b"s" * 64, key_id=3)
        assert split_signed_payload(payload, 64) == (b"signable", 3, b"s" * 64)

    @pytest.mark.parametrize("key_id", [-1, 256])
    def test_key_id_must_fit_in_a_byte(self, key_id):
        with pytest.raises(ValueError):
            attach_signature(b"x", b"s" * 64, key_id)

    def test_empty_signature_rejected(self):
        with pytest.raises(ValueError):
            attach_signature(b"x", b"", 0)

    def test_split_too_short(self):
        with pytest.raises(ValueError):
            split_signed_payload(b"s" * 64, 64)


class TestSigner:

    def test_address_format(self, signer):
        assert signer.address.startswith("0x")
        assert len(signer.address) == 42
        assert signer.address == address_from_public_key(signer.public_key)

    def test_from_hex_matches_bytes(self, signer):
        restored = Ed25519Signer.from_hex("0x" + signer.private_bytes().hex())
        assert restored.address == signer.address

    @pytest.mark.asyncio
    async def test_sign_and_verify(self, signer):
        signature = await signer.sign(b"digest")
        assert len(signature) == signer.signature_size
        verify_signature(signer.public_key, b"digest", signature)

        with pytest.raises(AuthenticationFailure):
            verify_signature(signer.public_key, b"other", signature)

    def test_verify_signer_address(self, signer, other_signer):
        verify_signer_address(signer.public_key, signer.address.upper().replace("0X", "0x"))
        with pytest.raises(AuthenticationFailure):
            verify_signer_address(signer.public_key, other_signer.address)

    def test_bad_public_key(self):
        with pytest.raises(AuthenticationFailure):
            verify_signature(b"\x01" * 5, b"m", b"s" * 64)

    def test_key_id_range(self):
        with pytest.raises(ValueError):
            Ed25519Signer.generate(key_id=300)

    def test_repr_hides_key(self, signer):
        assert signer.private_bytes().hex() not in repr(signer)


class TestPendingStateChange:

    def test_signable_excludes_bookkeeping(self):
        a = make_change()
        b = make_change()
        b.identity_id = "someone-else"
        b.signature = b"sig"
        b.signer_key_id = 5
        assert a.signable_bytes() == b.signable_bytes()

    def test_signable_covers_payload_and_kind(self):
        a = make_change()
        b = make_change(document={"tokenId": "42", "version": 2})
        c = make_change()
        c.kind = TransitionKind.REPLACE
        assert len({a.signable_bytes(), b.signable_bytes(), c.signable_bytes()}) == 3

    def test_signable_decodes_to_fields(self):
        data = json.loads(make_change().signable_bytes())
        assert data == {
            "kind": 1,
            "protocolVersion": 1,
            "payload": {"document": {"tokenId": "42", "version": 1}},
        }

    def test_out_of_order_advance(self):
        change = make_change()
        with pytest.raises(TransitionStateError):
            change.advance(TransitionState.SIGNED)
        assert change.state is TransitionState.BUILT


class TestTransactionSigner:

    @pytest.mark.asyncio
    async def test_full_pipeline(self, signer):
        endpoint = FakeEndpoint()
        tx = TransactionSigner(signer, endpoint)
        change = make_change()

        reference = await tx.sign_and_broadcast(change)

        assert reference == "ref-1"
        assert change.state is TransitionState.CONFIRMED
        assert change.transition_hash == "ref-1"

        signable, key_id, signature = split_signed_payload(endpoint.payloads[0], 64)
        assert signable == change.signable_bytes()
        assert key_id == signer.key_id
        verify_signature(signer.public_key, double_sha256(signable), signature)

    @pytest.mark.asyncio
    async def test_non_ed25519_wallet_signer(self):
        """Signature width and verification come from the injected signer."""
        wallet = WalletSigner()
        endpoint = FakeEndpoint()
        change = make_change()

        await TransactionSigner(wallet, endpoint).sign_and_broadcast(change)

        assert change.state is TransitionState.CONFIRMED
        payload = endpoint.payloads[0]
        assert len(payload) == len(change.signable_bytes()) + 1 + 65
        signable, key_id, signature = split_signed_payload(payload, 65)
        assert key_id == 1
        wallet.verify(double_sha256(signable), signature)

    @pytest.mark.asyncio
    async def test_wallet_signer_mismatch_rejected(self):
        tx = TransactionSigner(ForgingSigner(WalletSigner(), WalletSigner(b"other-secret")))
        tx.signer.signature_size = 65
        change = make_change()
        tx.extract(change)

        with pytest.raises(AuthenticationFailure):
            await tx.sign(change)
        assert change.state is TransitionState.REJECTED

    @pytest.mark.asyncio
    async def test_step_by_step_states(self, signer):
        tx = TransactionSigner(signer, FakeEndpoint())
        change = make_change()

        signable = tx.extract(change)
        assert change.state is TransitionState.SIGNABLE_EXTRACTED
        await tx.sign(change)
        assert change.state is TransitionState.SIGNED
        payload = tx.attach(change)
        assert change.state is TransitionState.ATTACHED
        assert len(payload) == len(signable) + 1 + 64
        await tx.broadcast(change, payload)
        assert change.state is TransitionState.CONFIRMED

    @pytest.mark.asyncio
    async def test_sign_before_extract(self, signer):
        with pytest.raises(TransitionStateError):
            await TransactionSigner(signer).sign(make_change())

    def test_attach_before_sign(self, signer):
        tx = TransactionSigner(signer)
        change = make_change()
        tx.extract(change)
        with pytest.raises(TransitionStateError):
            tx.attach(change)

    def test_extract_twice(self, signer):
        tx = TransactionSigner(signer)
        change = make_change()
        tx.extract(change)
        with pytest.raises(TransitionStateError):
            tx.extract(change)

    @pytest.mark.asyncio
    async def test_resign_after_attach_needs_rebuild(self, signer):
        tx = TransactionSigner(signer)
        change = make_change()
        tx.extract(change)
        await tx.sign(change)
        tx.attach(change)

        with pytest.raises(TransitionStateError):
            await tx.sign(change)

        fresh = change.rebuild()
        assert fresh.state is TransitionState.BUILT
        assert fresh.signature is None
        assert fresh.signable_bytes() == change.signable_bytes()
        tx.extract(fresh)
        await tx.sign(fresh)
        assert fresh.state is TransitionState.SIGNED

    @pytest.mark.asyncio
    async def test_foreign_signature_rejected(self, signer, other_signer):
        tx = TransactionSigner(ForgingSigner(signer, other_signer))
        change = make_change()
        tx.extract(change)

        with pytest.raises(AuthenticationFailure):
            await tx.sign(change)
        assert change.state is TransitionState.REJECTED
        assert change.signature is None

    @pytest.mark.asyncio
    async def test_wrong_width_rejected(self, signer):
        tx = TransactionSigner(TruncatingSigner(signer, signer))
        change = make_change()
        tx.extract(change)

        with pytest.raises(AuthenticationFailure):
            await tx.sign(change)
        assert change.state is TransitionState.REJECTED

    @pytest.mark.asyncio
    async def test_broadcast_failure_marks_rejected(self, signer):
        error = NetworkFailure("down", diagnostic="503 body")
        tx = TransactionSigner(signer, FakeEndpoint(error=error))
        change = make_change()

        with pytest.raises(NetworkFailure) as exc:
            await tx.sign_and_broadcast(change)
        assert exc.value is error
        assert change.state is TransitionState.REJECTED

    @pytest.mark.asyncio
    async def test_broadcast_without_endpoint(self, signer):
        tx = TransactionSigner(signer)
        change = make_change()
        tx.extract(change)
        await tx.sign(change)
        payload = tx.attach(change)

        with pytest.raises(TransitionStateError):
            await tx.broadcast(change, payload)
        assert change.state is TransitionState.ATTACHED


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestBroadcastEndpoint:

    @pytest.mark.asyncio
    async def test_posts_octet_stream(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"transitionHash": "abc"})

        async with BroadcastEndpoint("http://ledger/", client=mock_client(handler)) as endpoint:
            assert await endpoint.broadcast(b"\x00payload") == "abc"

        assert seen == {
            "path": "/platform/broadcastStateTransition",
            "type": "application/octet-stream",
            "body": b"\x00payload",
        }

    @pytest.mark.asyncio
    async def test_conflict_status(self):
        endpoint = BroadcastEndpoint(
            "http://ledger", client=mock_client(lambda r: httpx.Response(409, text="stale"))
        )
        with pytest.raises(VersionConflict) as exc:
            await endpoint.broadcast(b"x")
        assert exc.value.diagnostic == "stale"

    @pytest.mark.asyncio
    async def test_error_status_carries_body(self):
        endpoint = BroadcastEndpoint(
            "http://ledger", client=mock_client(lambda r: httpx.Response(500, text="boom"))
        )
        with pytest.raises(NetworkFailure) as exc:
            await endpoint.broadcast(b"x")
        assert exc.value.status_code == 500
        assert exc.value.diagnostic == "boom"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        endpoint = BroadcastEndpoint("http://ledger", client=mock_client(handler))
        with pytest.raises(NetworkFailure):
            await endpoint.broadcast(b"x")

    @pytest.mark.asyncio
    async def test_missing_reference(self):
        endpoint = BroadcastEndpoint(
            "http://ledger", client=mock_client(lambda r: httpx.Response(200, json={"ok": True}))
        )
        with pytest.raises(NetworkFailure):
            await endpoint.broadcast(b"x")


class TestLedgerRecordBackend:

    @pytest.fixture
    def captured(self):
        return []

    @pytest.fixture
    def ledger(self, signer, captured):
        def handler(request):
            if request.url.path == "/platform/documents/query":
                captured.append(json.loads(request.content))
                return httpx.Response(200, json={"documents": [{"tokenId": "42"}]})
            captured.append(request.content)
            return httpx.Response(200, json={"transitionHash": "tx-1"})

        client = mock_client(handler)
        return LedgerRecordBackend(
            reader=HttpCollaborator("http://ledger", client=client),
            tx_signer=TransactionSigner(signer, BroadcastEndpoint("http://ledger", client=client)),
            data_contract_id="contract-1",
            identity_id="identity-1",
        )

    @pytest.mark.asyncio
    async def test_query_body(self, ledger, captured):
        query = RecordQuery(where=[["tokenId", "==", "42"]], order_by=[["version", "desc"]], limit=1)
        assert await ledger.query("notes", query) == [{"tokenId": "42"}]
        assert captured[0] == {
            "documentType": "notes",
            "where": [["tokenId", "==", "42"]],
            "orderBy": [["version", "desc"]],
            "limit": 1,
        }

    @pytest.mark.asyncio
    async def test_replace_is_signed_transition(self, ledger, captured, signer):
        document = {"tokenId": "42", "version": 3, "agentWallet": signer.address}
        receipt = await ledger.replace("notes", document, expected_version=2)

        assert receipt.transition_hash == "tx-1"
        assert receipt.document_id == document_id("notes", "42", 3)

        signable, _, signature = split_signed_payload(captured[0], 64)
        verify_signature(signer.public_key, double_sha256(signable), signature)
        transition = json.loads(signable)
        assert transition["kind"] == int(TransitionKind.REPLACE)
        assert transition["payload"] == {
            "dataContractId": "contract-1",
            "documentType": "notes",
            "document": document,
            "expectedVersion": 2,
        }

    @pytest.mark.asyncio
    async def test_conflict_names_resource(self, signer):
        client = mock_client(lambda r: httpx.Response(409, text="stale"))
        ledger = LedgerRecordBackend(
            reader=HttpCollaborator("http://ledger", client=client),
            tx_signer=TransactionSigner(signer, BroadcastEndpoint("http://ledger", client=client)),
            data_contract_id="contract-1",
        )
        with pytest.raises(VersionConflict) as exc:
            await ledger.create("notes", {"tokenId": "42", "version": 1})
        assert exc.value.resource_id == "42"
        assert exc.value.expected_version == 0

    @pytest.mark.asyncio
    async def test_unexpected_query_body(self, signer):
        client = mock_client(lambda r: httpx.Response(200, json=[1, 2]))
        ledger = LedgerRecordBackend(
            reader=HttpCollaborator("http://ledger", client=client),
            tx_signer=TransactionSigner(signer),
            data_contract_id="contract-1",
        )
        with pytest.raises(NetworkFailure):
            await ledger.query("notes", RecordQuery())
