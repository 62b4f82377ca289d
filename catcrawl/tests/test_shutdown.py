"""Tests for the signal-driven shutdown flag."""

import signal

from catcrawl.shutdown import get_shutdown_handler, request_shutdown, shutdown_requested


class TestShutdownHandler:

    def test_singleton(self):
        assert get_shutdown_handler() is get_shutdown_handler()

    def test_request_and_reset(self, reset_shutdown):
        assert not shutdown_requested()

        request_shutdown()
        assert shutdown_requested()

        reset_shutdown.reset()
        assert not shutdown_requested()

    def test_signal_sets_flag_and_uninstall_restores(self):
        original = signal.getsignal(signal.SIGINT)
        handler = get_shutdown_handler().install()
        try:
            assert signal.getsignal(signal.SIGINT) == handler._handle_signal

            handler._handle_signal(signal.SIGINT, None)

            assert handler.shutdown_requested
            assert signal.getsignal(signal.SIGINT) == handler._force_exit
        finally:
            handler.uninstall()

        assert signal.getsignal(signal.SIGINT) == original
