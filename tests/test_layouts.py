import numpy as np
import pytest

from corridormc.exceptions import ConfigurationError
from corridormc.layouts import (
    DEFAULT_GROUP_WIDTH,
    ContiguousLayout,
    StridedLayout,
    make_layout,
)

SHAPES = [
    (1, 1),
    (3, 10),
    (5, 64),
    (4, 65),
    (2, 130),
    (7, 1000),
]


def _layouts(num_steps, num_paths):
    return [
        ContiguousLayout(num_steps, num_paths),
        StridedLayout(num_steps, num_paths, group_width=64),
        StridedLayout(num_steps, num_paths, group_width=3),
    ]


class TestBijection:
    """Every (path, step, leg) maps to a distinct position of [0, 2NP)"""

    @pytest.mark.parametrize(("num_steps", "num_paths"), SHAPES)
    def test_index_table_is_permutation(self, num_steps, num_paths):
        for layout in _layouts(num_steps, num_paths):
            table = layout.index_table().ravel()
            assert table.size == 2 * num_steps * num_paths
            np.testing.assert_array_equal(np.sort(table), np.arange(layout.size))

    def test_scalar_offset_matches_table(self, tiny_config):
        layout = StridedLayout(tiny_config.num_steps, tiny_config.num_paths, group_width=4)
        table = layout.index_table()
        for p in range(tiny_config.num_paths):
            for n in range(tiny_config.num_steps):
                for leg in (0, 1):
                    assert layout.offset(p, n, leg) == table[p, n, leg]

    def test_offsets_vectorised_matches_scalar(self, strided_layout):
        ids = np.array([0, 1, 63, 64, 999], dtype=np.int64)
        vec = strided_layout.offsets(ids, 5, 1)
        assert [strided_layout.offset(int(p), 5, 1) for p in ids] == vec.tolist()

    def test_index_table_subset(self, strided_layout):
        ids = np.array([3, 700], dtype=np.int64)
        full = strided_layout.index_table()
        np.testing.assert_array_equal(strided_layout.index_table(ids), full[ids])


class TestContiguousLayout:
    def test_formula(self):
        layout = ContiguousLayout(num_steps=100, num_paths=960_000)
        assert layout.offset(0, 0, 0) == 0
        assert layout.offset(0, 0, 1) == 1
        assert layout.offset(0, 99, 1) == 199
        assert layout.offset(1, 0, 0) == 200
        assert layout.offset(959_999, 99, 1) == 2 * 100 * 960_000 - 1

    def test_path_block_is_contiguous(self):
        layout = ContiguousLayout(num_steps=4, num_paths=3)
        np.testing.assert_array_equal(layout.index_table()[1].ravel(), np.arange(8, 16))


class TestStridedLayout:
    def test_formula_full_groups(self):
        layout = StridedLayout(num_steps=100, num_paths=960_000, group_width=64)
        # g = 0, l = 5
        assert layout.offset(5, 0, 0) == 5
        assert layout.offset(5, 0, 1) == 5 + 64
        assert layout.offset(5, 3, 1) == 5 + 7 * 64
        # g = 2, l = 1
        assert layout.offset(129, 0, 0) == 2 * 100 * 64 * 2 + 1

    def test_group_reads_are_adjacent(self):
        layout = StridedLayout(num_steps=10, num_paths=256, group_width=64)
        ids = np.arange(64, 128, dtype=np.int64)
        offs = layout.offsets(ids, 4, 0)
        np.testing.assert_array_equal(np.diff(offs), np.ones(63, dtype=np.int64))

    def test_ragged_tail_stays_in_range(self):
        # 1000 = 15 * 64 + 40
        layout = StridedLayout(num_steps=20, num_paths=1000, group_width=64)
        last = layout.offset(999, 19, 1)
        assert last == layout.size - 1
        stride = layout.path_stride(np.array([0, 959, 960, 999], dtype=np.int64))
        np.testing.assert_array_equal(stride, [64, 64, 40, 40])

    def test_single_group_equals_transposed_contiguous(self):
        # with one group spanning every path, shock k of path p sits at k * P + p
        layout = StridedLayout(num_steps=3, num_paths=5, group_width=64)
        table = layout.index_table().reshape(5, 6)
        np.testing.assert_array_equal(table, np.arange(30).reshape(6, 5).T)

    def test_group_width_one_equals_contiguous(self):
        strided = StridedLayout(num_steps=4, num_paths=9, group_width=1)
        contiguous = ContiguousLayout(num_steps=4, num_paths=9)
        np.testing.assert_array_equal(strided.index_table(), contiguous.index_table())

    def test_invalid_group_width(self):
        with pytest.raises(ConfigurationError, match="group_width"):
            StridedLayout(2, 2, group_width=0)

    def test_repr(self):
        assert "group_width=64" in repr(StridedLayout(2, 3))


class TestBounds:
    @pytest.mark.parametrize(
        ("path_id", "step", "leg"),
        [(-1, 0, 0), (10, 0, 0), (0, 3, 0), (0, -1, 0), (0, 0, 2), (0, 0, -1)],
    )
    def test_offset_out_of_range(self, tiny_config, path_id, step, leg):
        layout = ContiguousLayout(tiny_config.num_steps, tiny_config.num_paths)
        with pytest.raises(IndexError):
            layout.offset(path_id, step, leg)

    @pytest.mark.parametrize("cls", [ContiguousLayout, StridedLayout])
    def test_non_positive_dimensions(self, cls):
        with pytest.raises(ConfigurationError):
            cls(0, 10)
        with pytest.raises(ConfigurationError):
            cls(10, -1)


class TestScatterGather:
    def test_gather_inverts_scatter(self, strided_layout, logical_shocks):
        buffer = strided_layout.scatter(logical_shocks)
        assert buffer.shape == (strided_layout.size,)
        np.testing.assert_array_equal(strided_layout.gather(buffer), logical_shocks)

    def test_layouts_place_values_differently(self, strided_layout, contiguous_layout, logical_shocks):
        a = strided_layout.scatter(logical_shocks)
        b = contiguous_layout.scatter(logical_shocks)
        assert not np.array_equal(a, b)
        np.testing.assert_array_equal(np.sort(a), np.sort(b))

    def test_gather_wrong_size(self, strided_layout):
        with pytest.raises(ValueError, match="layout expects"):
            strided_layout.gather(np.zeros(3, dtype=np.float32))

    def test_scatter_wrong_shape(self, contiguous_layout):
        with pytest.raises(ValueError, match="shape"):
            contiguous_layout.scatter(np.zeros((2, 2, 2), dtype=np.float32))


class TestMakeLayout:
    def test_by_name(self):
        assert isinstance(make_layout("strided", 2, 3), StridedLayout)
        assert isinstance(make_layout("contiguous", 2, 3), ContiguousLayout)

    def test_group_width_forwarded(self):
        layout = make_layout("strided", 2, 300, group_width=32)
        assert layout.group_width == 32
        assert make_layout("strided", 2, 3).group_width == DEFAULT_GROUP_WIDTH

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="layout must be one of"):
            make_layout("diagonal", 2, 3)
