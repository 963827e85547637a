import pytest

from verilens.app.utils.hashing import sha256_file, sha256_hex

ABC_DIGEST = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_known_vector():
    assert sha256_hex(b"abc") == ABC_DIGEST


def test_text_is_hashed_as_utf8():
    assert sha256_hex("abc") == ABC_DIGEST
    assert sha256_hex("café") == sha256_hex("café".encode("utf-8"))


def test_digest_is_lowercase_hex_without_prefix():
    digest = sha256_hex(b"\x00\xff" * 100)

    assert len(digest) == 64
    assert digest == digest.lower()
    int(digest, 16)


def test_rejects_non_bytes_input():
    with pytest.raises(TypeError):
        sha256_hex(12345)


def test_file_digest_matches_in_memory_digest(tmp_path):
    content = b"verilens" * 50_000
    target = tmp_path / "capture.bin"
    target.write_bytes(content)

    assert sha256_file(target, chunk_size=1024) == sha256_hex(content)
