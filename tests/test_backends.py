import numpy as np
import pytest

from corridormc.backends import SequentialBackend, ThreadBackend, make_blocks, transfer_to_host
from corridormc.exceptions import TransferError
from corridormc.kernel import simulate_paths
from corridormc.layouts import StridedLayout
from corridormc.random_source import NumpyRandomSource


class TestMakeBlocks:
    def test_covers_range(self):
        assert make_blocks(5, block_size=2) == [(0, 2), (2, 4), (4, 5)]

    def test_exact_multiple(self):
        assert make_blocks(6, block_size=3) == [(0, 3), (3, 6)]

    def test_empty(self):
        assert make_blocks(0, block_size=3) == []

    def test_invalid_block_size(self):
        with pytest.raises(ValueError, match="block_size"):
            make_blocks(10, block_size=0)


class TestSequentialBackend:
    def test_matches_kernel(self, small_config, small_buffer, strided_layout):
        payoffs = SequentialBackend(block_size=128).run(small_config, small_buffer, strided_layout)
        ref = simulate_paths(small_config, small_buffer, strided_layout, np.arange(small_config.num_paths))
        np.testing.assert_array_equal(payoffs, ref)
        assert payoffs.dtype == np.float32

    def test_block_size_irrelevant(self, small_config, small_buffer, strided_layout):
        a = SequentialBackend(block_size=1).run(small_config, small_buffer, strided_layout)
        b = SequentialBackend(block_size=10_000).run(small_config, small_buffer, strided_layout)
        np.testing.assert_array_equal(a, b)

    def test_progress_reaches_total(self, small_config, small_buffer, strided_layout):
        calls = []
        SequentialBackend(block_size=300).run(
            small_config, small_buffer, strided_layout, progress_callback=lambda c, t: calls.append((c, t))
        )
        assert calls == [(300, 1000), (600, 1000), (900, 1000), (1000, 1000)]


class TestThreadBackend:
    @pytest.mark.parametrize("n_workers", [1, 2, 4, 7])
    def test_matches_sequential(self, small_config, small_buffer, strided_layout, n_workers):
        seq = SequentialBackend().run(small_config, small_buffer, strided_layout)
        par = ThreadBackend(n_workers=n_workers).run(small_config, small_buffer, strided_layout)
        np.testing.assert_array_equal(seq, par)

    def test_progress_monotone(self, small_config, small_buffer, contiguous_layout):
        calls = []
        ThreadBackend(n_workers=3).run(
            small_config, small_buffer, contiguous_layout, progress_callback=lambda c, t: calls.append(c)
        )
        assert calls == sorted(calls)
        assert calls[-1] == small_config.num_paths

    def test_invalid_workers(self):
        with pytest.raises(ValueError, match="n_workers"):
            ThreadBackend(n_workers=0)

    def test_prepare_blocks(self):
        blocks = ThreadBackend(n_workers=2, chunks_per_worker=4)._prepare_blocks(100)
        assert blocks[0] == (0, 12)
        assert blocks[-1][1] == 100

    def test_more_workers_than_paths(self, tiny_config):
        buf = NumpyRandomSource().generate(tiny_config.buffer_size, seed=1)
        layout = StridedLayout(tiny_config.num_steps, tiny_config.num_paths)
        out = ThreadBackend(n_workers=64).run(tiny_config, buf, layout)
        assert out.shape == (tiny_config.num_paths,)


class TestTransferToHost:
    def test_ndarray_passthrough(self):
        arr = np.zeros(3, dtype=np.float32)
        assert transfer_to_host(arr) is arr

    def test_unknown_type(self):
        with pytest.raises(TransferError, match="cannot transfer") as exc:
            transfer_to_host([0.0, 1.0])
        assert exc.value.phase == "transfer"

    def test_device_failure(self):
        class _LostDevice:
            device = "cuda:0"

            def numel(self):
                return 4

            def detach(self):
                raise RuntimeError("device lost")

        with pytest.raises(TransferError, match="device lost"):
            transfer_to_host(_LostDevice())

    def test_tensor(self):
        torch = pytest.importorskip("torch")
        host = transfer_to_host(torch.ones(5))
        assert isinstance(host, np.ndarray)
        np.testing.assert_array_equal(host, np.ones(5, dtype=np.float32))
