import pytest

from cpm_driver import (
    BLOCK_SIZE,
    DATA_OFFSET,
    LAYOUT_SIZE,
    MAX_NUM_BLOCKS,
    DiskSize,
    FormatError,
    addressable_blocks,
    block_offset,
)


def test_layout_constants():
    assert LAYOUT_SIZE == 0xA0000
    assert MAX_NUM_BLOCKS == 316


@pytest.mark.parametrize("block, offset", [
    (0, 0x2000),
    (1, 0x2800),
    (2, 0x4000),
    (3, 0x4800),
    (0x9c, 0x9e000),
    (0x9d, 0x9e800),
    # side 1, counting down from the end of the layout
    (0x9e, 0x9f000),
    (0x9f, 0x9f800),
    (0xa0, 0x9d000),
    (0xa1, 0x9d800),
    (314, 0x3000),
    (315, 0x3800),
])
def test_block_offsets(block, offset):
    assert block_offset(block) == offset


def test_threshold_crosses_sides():
    below = block_offset(0x9d)
    above = block_offset(0x9e)
    assert above < LAYOUT_SIZE
    assert above > block_offset(0x9c)
    # 0x9d is the odd half of the last side-0 track, 0x9e starts the last side-1 track
    assert below == DATA_OFFSET + 0x9c * BLOCK_SIZE * 2 + BLOCK_SIZE
    assert above == LAYOUT_SIZE - 1 * BLOCK_SIZE * 2


def test_blocks_never_overlap():
    offsets = sorted(block_offset(b) for b in range(MAX_NUM_BLOCKS))
    assert offsets[0] == DATA_OFFSET
    assert offsets[-1] + BLOCK_SIZE <= LAYOUT_SIZE
    for a, b in zip(offsets, offsets[1:]):
        assert b - a >= BLOCK_SIZE


@pytest.mark.parametrize("block", [-1, MAX_NUM_BLOCKS, 0x1000, 0xffff])
def test_out_of_range_block(block):
    with pytest.raises(FormatError) as excinfo:
        block_offset(block)
    assert excinfo.value.block == block


def test_addressable_blocks_compis():
    blocks = addressable_blocks(DiskSize.K640.num_bytes)
    # The last side-1 track lies beyond 636K
    assert 0x9d in blocks
    assert 0x9e not in blocks
    assert 0x9f not in blocks
    assert 0xa0 in blocks
    assert len(blocks) == MAX_NUM_BLOCKS - 2


def test_addressable_blocks_full_layout():
    assert addressable_blocks(LAYOUT_SIZE) == list(range(MAX_NUM_BLOCKS))
