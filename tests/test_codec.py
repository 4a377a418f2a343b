"""Cache key derivation and TTL envelope tests."""

import hashlib
import io

import pytest

from adcraft.core.codec import CacheCodec, compute_key, hash_content
from adcraft.core.exceptions import CorruptEntryError
from conftest import START_MS


class TestComputeKey:

    def test_identical_inputs_give_identical_keys(self):
        assert compute_key("video", "img-1", "red shoe") == compute_key("video", "img-1", "red shoe")

    def test_key_is_prefixed_sha256(self):
        key = compute_key("gen", "prompt")
        prefix, digest = key.split("_", 1)
        assert prefix == "gen"
        assert len(digest) == 64
        int(digest, 16)

    def test_any_changed_parameter_changes_key(self):
        base = compute_key("video", "img-1", "red shoe")
        assert compute_key("video", "img-2", "red shoe") != base
        assert compute_key("video", "img-1", "blue shoe") != base

    def test_order_sensitive(self):
        assert compute_key("gen", "a", "b") != compute_key("gen", "b", "a")

    def test_prefix_separates_kinds(self):
        assert compute_key("video", "same") != compute_key("gen", "same")

    def test_concatenation_is_unambiguous(self):
        assert compute_key("gen", "ab", "c") != compute_key("gen", "a", "bc")

    def test_types_are_distinguished(self):
        assert compute_key("gen", "1") != compute_key("gen", 1)
        assert compute_key("gen", 1) != compute_key("gen", True)
        assert compute_key("gen", "") != compute_key("gen", b"")

    def test_sequence_matches_positional_inputs(self):
        assert compute_key("video", ("img-1", "prompt")) == compute_key("video", "img-1", "prompt")
        assert compute_key("video", ["img-1", "prompt"]) == compute_key("video", "img-1", "prompt")

    def test_structured_descriptor_ignores_dict_order(self):
        first = compute_key("gen", {"prompt": "x", "aspect": "9:16"})
        second = compute_key("gen", {"aspect": "9:16", "prompt": "x"})
        assert first == second

    def test_degenerate_inputs_are_stable(self):
        assert compute_key("gen", "") == compute_key("gen", "")
        assert compute_key("gen", b"") == compute_key("gen", b"")
        assert compute_key("gen") == compute_key("gen")
        assert compute_key("gen") != compute_key("gen", "")

    def test_codec_method_matches_function(self):
        assert CacheCodec().compute_key("video", "x") == compute_key("video", "x")


class TestHashContent:

    def test_bytes(self):
        assert hash_content(b"image-bytes") == hashlib.sha256(b"image-bytes").hexdigest()

    def test_empty_buffer(self):
        assert hash_content(b"") == hashlib.sha256(b"").hexdigest()

    def test_file_path_and_stream_agree(self, tmp_path):
        path = tmp_path / "shoe.jpg"
        path.write_bytes(b"\xff\xd8" * 1000)
        expected = hashlib.sha256(b"\xff\xd8" * 1000).hexdigest()
        assert hash_content(path) == expected
        assert hash_content(str(path)) == expected
        assert hash_content(io.BytesIO(b"\xff\xd8" * 1000)) == expected


class TestEnvelope:

    def test_wrap_sets_timestamps(self, codec):
        entry = codec.wrap({"title": "Shoe"}, 5000, "gen_abc")
        assert entry.created_at == START_MS
        assert entry.expires_at == START_MS + 5000
        assert entry.data == {"title": "Shoe"}

    def test_document_uses_stored_field_names(self, codec):
        document = codec.wrap("url", 10, "video_abc").to_document()
        assert document == {
            "data": "url",
            "timestamp": START_MS,
            "expiresAt": START_MS + 10,
            "key": "video_abc",
        }

    def test_liveness_boundary(self, codec, clock):
        entry = codec.wrap("x", 1000, "k")
        clock.advance(1000)
        assert codec.is_live(entry)
        clock.advance(1)
        assert not codec.is_live(entry)

    @pytest.mark.parametrize("ttl", [0, -1, -60_000])
    def test_non_positive_ttl_is_never_live(self, codec, ttl):
        assert not codec.is_live(codec.wrap("x", ttl, "k"))

    def test_decode_round_trip(self, codec):
        entry = codec.wrap([1, 2, 3], 100, "gen_k")
        assert codec.decode("gen_k", entry.to_document()) == entry

    def test_explicit_null_payload_is_valid(self, codec):
        entry = codec.decode("k", {"data": None, "timestamp": 1, "expiresAt": 5, "key": "k"})
        assert entry.data is None

    @pytest.mark.parametrize("document", [
        "just a string",
        ["a", "list"],
        {"data": 1},
        {"timestamp": 1, "expiresAt": 5, "key": "k"},
        {"data": 1, "timestamp": "soon", "expiresAt": 5, "key": "k"},
        {"data": 1, "timestamp": 1, "expiresAt": 5, "key": ""},
    ])
    def test_decode_rejects_malformed(self, codec, document):
        with pytest.raises(CorruptEntryError):
            codec.decode("k", document)
