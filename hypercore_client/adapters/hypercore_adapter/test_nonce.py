import pytest

from hypercore_client.adapters.hypercore_adapter.nonce import NonceSequencer
from hypercore_client.core.errors import NegativeTimestampError, RequestValidationError


class TestNonceSequencer:
    def test_returns_injected_clock_milliseconds(self):
        nonces = NonceSequencer(clock=lambda: 1700000000000)
        assert nonces.next_nonce() == 1700000000000

    def test_negative_clock_is_rejected(self):
        nonces = NonceSequencer(clock=lambda: -1)
        with pytest.raises(NegativeTimestampError):
            nonces.next_nonce()

    def test_override_short_circuits_the_clock(self):
        def _clock():
            raise AssertionError("clock should not be read")

        assert NonceSequencer(clock=_clock).next_nonce(override=42) == 42

    def test_default_clock_is_wall_time(self):
        assert NonceSequencer().next_nonce() > 1700000000000

    @pytest.mark.parametrize("override", [0, -5, 2**64])
    def test_out_of_range_override_is_rejected(self, override):
        with pytest.raises(RequestValidationError, match="positive uint64"):
            NonceSequencer(clock=lambda: 1).next_nonce(override=override)

    def test_largest_uint64_override_is_accepted(self):
        assert NonceSequencer().next_nonce(override=2**64 - 1) == 2**64 - 1
