"""
Test the signature catalogue and the carver against synthetic fragments.
This proves every signature match is found, including overlapping ones.
"""
import random
import time
import tracemalloc
from itertools import islice

from chkrescue.signatures import (
    DEFAULT_SIGNATURES,
    Signature,
    SignatureError,
    SignatureRegistry,
    build_default_registry,
    build_registry,
)
from chkrescue.carver import CarveCancelled, carve, find_matches, iter_matches


def naive_scan(data, registry):
    """Byte-by-byte offsets x signatures reference scan."""
    out = []
    for i in range(len(data)):
        for sig in registry.entries():
            if not data.startswith(sig.header, i):
                continue
            if sig.contains and sig.contains not in data[i + len(sig.header):]:
                continue
            out.append((i, sig.extension))
    return out


def main():
    print("=" * 60)
    print("  Carver — Test Suite")
    print("=" * 60)
    print()

    test_registry_decodes_hex()
    test_registry_rejects_bad_hex()
    test_registry_rejects_empty_header()
    test_registry_frozen()
    test_default_registry()
    test_header_only_buffer()
    test_contains_marker()
    test_shared_header_both_emitted()
    test_contains_must_follow_header()
    test_header_longer_than_buffer()
    test_empty_buffer()
    test_matches_naive_scan()
    test_cancel()
    test_zero_filled_fragment()
    test_matches_are_lazy()

    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


def test_registry_decodes_hex():
    print("── Test: registry hex decoding ──")
    reg = SignatureRegistry()
    sig = reg.register("docx", "504B0304", "776F72642F")
    assert sig.header == b"PK\x03\x04"
    assert sig.contains == b"word/"
    plain = reg.register("zip", b"PK\x03\x04")
    assert plain.contains == b""
    assert not plain.has_contains
    assert [s.extension for s in reg.entries()] == ["docx", "zip"]
    print("  ✅ registry hex decoding: PASS")


def test_registry_rejects_bad_hex():
    print("── Test: malformed catalogue fails fast ──")
    for row in (("bad", "zz", ""), ("bad", "abc", ""), ("bad", "ffd8", "4g")):
        try:
            build_registry([("jpg", "ffd8", "4a464946"), row])
        except SignatureError as e:
            assert "bad" in str(e)
        else:
            raise AssertionError(f"expected SignatureError for {row}")
    assert issubclass(SignatureError, ValueError)
    print("  ✅ malformed catalogue: PASS")


def test_registry_rejects_empty_header():
    print("── Test: empty header rejected ──")
    for args in (("x", ""), ("", "ffd8")):
        try:
            SignatureRegistry().register(*args)
        except SignatureError:
            pass
        else:
            raise AssertionError(f"expected SignatureError for {args}")
    try:
        Signature(extension="x", header=b"")
    except SignatureError:
        pass
    else:
        raise AssertionError("Signature accepted an empty header")
    print("  ✅ empty header: PASS")


def test_registry_frozen():
    print("── Test: frozen registry ──")
    reg = build_registry([("gif", "47494638", "")])
    assert reg.frozen
    try:
        reg.register("png", "89504e470d0a1a")
    except SignatureError:
        pass
    else:
        raise AssertionError("frozen registry accepted a new signature")
    assert len(reg) == 1
    print("  ✅ frozen registry: PASS")


def test_default_registry():
    print("── Test: default catalogue ──")
    reg = build_default_registry()
    assert len(reg) == len(DEFAULT_SIGNATURES) == 84
    entries = reg.entries()
    assert entries[0].extension == "jpg"
    assert entries[0].header == b"\xff\xd8"
    assert entries[-1].extension == "clp"
    assert all(s.header for s in entries)
    assert "docx" in reg.extensions()
    print("  ✅ default catalogue: PASS")


def test_header_only_buffer():
    print("── Test: buffer equal to a header ──")
    reg = build_registry([("gif", "47494638", "")])
    arts = list(carve(b"GIF8", reg))
    assert len(arts) == 1
    assert arts[0].extension == "gif"
    assert arts[0].payload == b"GIF8"
    assert arts[0].offset == 0
    print("  ✅ header-only buffer: PASS")


def test_contains_marker():
    print("── Test: contains marker ──")
    reg = build_registry([("wav", "52494646", "57415645")])
    data = b"RIFF" + b"\x10\x00\x00\x00" + b"WAVE" + b"fmt data"
    arts = list(carve(data, reg))
    assert [(a.extension, a.payload) for a in arts] == [("wav", data)]

    # Embedded at an offset: payload runs from the header to the end
    prefixed = b"\x01\x02\x03" + data
    arts = list(carve(prefixed, reg))
    assert len(arts) == 1
    assert arts[0].offset == 3
    assert arts[0].payload == data

    # Without the marker there is no match
    assert list(carve(b"RIFF" + b"\x10\x00\x00\x00" + b"fmt data", reg)) == []
    print("  ✅ contains marker: PASS")


def test_shared_header_both_emitted():
    print("── Test: shared header, every match emitted ──")
    reg = build_default_registry()
    data = b"#!/usr/bin/python\nprint('hi')\n"
    arts = list(carve(data, reg))
    assert [a.extension for a in arts] == ["py", "sh"]
    assert all(a.payload == data for a in arts)

    # DOCX also matches the plain ZIP entry at the same offset
    docx = b"PK\x03\x04" + b"\x14\x00" * 8 + b"word/document.xml" + b"\x00" * 8
    exts = [a.extension for a in carve(docx, reg) if a.offset == 0]
    assert exts == ["docx", "zip"]
    print("  ✅ shared header: PASS")


def test_contains_must_follow_header():
    print("── Test: contains before the header does not count ──")
    reg = build_registry([("docx", "504B0304", "776F72642F")])
    data = b"word/" + b"PK\x03\x04" + b"\x00" * 16
    assert list(carve(data, reg)) == []

    # Marker overlapping the header itself does not count either
    reg = build_registry([("t", "6162", "6263")])  # header "ab", contains "bc"
    assert list(carve(b"abc", reg)) == []
    assert [a.offset for a in carve(b"abbc", reg)] == [0]
    print("  ✅ contains placement: PASS")


def test_header_longer_than_buffer():
    print("── Test: header longer than remaining bytes ──")
    reg = build_registry([("asf", "3026b2758e66cf11a6d900aa0062ce6c", "")])
    assert list(carve(b"\x30\x26\xb2\x75", reg)) == []

    # A header at the very end matches only without a contains marker
    reg = build_registry([("bmp", "424d", ""), ("xbm", "424d", "00")])
    arts = list(carve(b"\x01BM", reg))
    assert [(a.extension, a.payload) for a in arts] == [("bmp", b"BM")]
    print("  ✅ short buffers: PASS")


def test_empty_buffer():
    print("── Test: empty buffer ──")
    reg = build_default_registry()
    assert list(carve(b"", reg)) == []
    assert find_matches(b"", reg) == []
    print("  ✅ empty buffer: PASS")


def test_matches_naive_scan():
    print("── Test: identical results to a byte-by-byte scan ──")
    reg = build_registry([
        ("a", b"a", b""),
        ("ab", b"ab", b""),
        ("ab-ba", b"ab", b"ba"),
        ("zz-b", b"\x00\x00", b"b"),
        ("aba", b"aba", b"\x00a"),
    ])
    random.seed(42)
    for _ in range(200):
        size = random.randint(0, 40)
        data = bytes(random.choice(b"ab\x00") for _ in range(size))
        got = [(a.offset, a.extension) for a in carve(data, reg)]
        assert got == naive_scan(data, reg), data
    print("  ✅ naive scan equivalence: PASS")


def test_cancel():
    print("── Test: cancellation ──")
    reg = build_default_registry()
    try:
        list(carve(b"GIF89a" + b"\x00" * 64, reg, should_cancel=lambda: True))
    except CarveCancelled:
        pass
    else:
        raise AssertionError("expected CarveCancelled")

    # A scan that is never cancelled returns the normal result
    arts = list(carve(b"GIF89a", reg, should_cancel=lambda: False))
    assert [a.extension for a in arts] == ["gif"]
    print("  ✅ cancellation: PASS")


def test_zero_filled_fragment():
    print("── Test: zero-filled fragment scans fast and flat ──")
    # The ftyp-family signatures all start with 00 00 00, so every offset of a
    # zeroed fragment is a header hit with no marker to back it up.
    reg = build_default_registry()
    data = b"\x00" * (16 * 1024 * 1024)
    tracemalloc.start()
    try:
        start = time.time()
        matches = find_matches(data, reg)
        elapsed = time.time() - start
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    assert matches == []
    assert elapsed < 10.0, f"took {elapsed:.1f}s"
    assert peak < 1024 * 1024, f"peak {peak} bytes"
    print(f"  ✅ zero-filled fragment ({elapsed:.2f}s, peak {peak} B): PASS")


def test_matches_are_lazy():
    print("── Test: matches stream in order without a full scan ──")
    reg = build_default_registry()
    data = b"\x00" * (8 * 1024 * 1024) + b"ftypisom"
    first = [(m.offset, m.signature.extension)
             for m in islice(iter_matches(data, reg), 3)]
    assert first == [(0, "mp4"), (1, "mp4"), (2, "mp4")]

    # The marker sits past every header hit except those it follows
    tail = b"\x00" * 5 + b"ftypqt  "
    got = [(m.offset, m.signature.extension) for m in iter_matches(tail, reg)]
    assert got == naive_scan(tail, reg)
    assert (2, "mov") in got
    print("  ✅ lazy matches: PASS")


if __name__ == "__main__":
    main()
