import pytest

from tinmesh.core.constraints import BreaklinePath, extract_constraints, paths_from_index_pairs
from tinmesh.core.errors import MalformedInput
from tinmesh.core.vertices import collect_vertices


def square_with_center():
    return collect_vertices([(0, 0), (1, 0), (1, 1), (0, 1), (0.5, 0.5)])


def test_open_polyline_edges_in_order():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 4, 2))])
    assert cs.edges == [(0, 4), (2, 4)]
    assert len(cs) == 2
    assert (4, 0) in cs


def test_closed_polygon_adds_wrap_edge():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 1, 2, 3), closed=True)])
    assert cs.edges == [(0, 1), (1, 2), (2, 3), (0, 3)]
    assert cs.degenerate_dropped == 0


def test_closed_polygon_with_repeated_first_vertex():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 1, 2, 3, 0), closed=True)])
    assert cs.edges == [(0, 1), (1, 2), (2, 3), (0, 3)]
    assert cs.degenerate_dropped == 0
    assert cs.duplicates_merged == 0


def test_two_vertex_closed_path_has_no_wrap_edge():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 2), closed=True)])
    assert cs.edges == [(0, 2)]
    assert cs.duplicates_merged == 0


def test_degenerate_segment_dropped_after_snapping():
    vs = collect_vertices([(0, 0), (1, 0), (1, 1), (1, 1 + 1e-9)], tolerance=1e-6)
    cs = extract_constraints(vs, [BreaklinePath((0, 2, 3, 1))])
    assert cs.degenerate_dropped == 1
    assert cs.edges == [(0, 2), (1, 2)]


def test_duplicate_segments_merged_across_paths():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 2)), BreaklinePath((2, 0)),
                                                    BreaklinePath((1, 3, 1))])
    assert cs.edges == [(0, 2), (1, 3)]
    assert cs.duplicates_merged == 2


def test_sources_keep_first_reference():
    cs = extract_constraints(square_with_center(), [BreaklinePath((0, 2), source_ref='ridge'),
                                                    BreaklinePath((2, 0), source_ref='dup')])
    assert cs.sources[(0, 2)] == 'ridge'


def test_short_path_is_malformed():
    with pytest.raises(MalformedInput):
        extract_constraints(square_with_center(), [BreaklinePath((1,))])


def test_index_out_of_range_is_malformed():
    with pytest.raises(MalformedInput):
        extract_constraints(square_with_center(), [BreaklinePath((0, 9))])


def test_paths_from_index_pairs():
    paths = paths_from_index_pairs([[0, 2], (1, 3)], source_ref='pairs')
    assert [p.raw_indices for p in paths] == [(0, 2), (1, 3)]
    assert all(not p.closed for p in paths)
    with pytest.raises(MalformedInput):
        paths_from_index_pairs([[0, 1, 2]])
    cs = extract_constraints(square_with_center(), paths)
    assert cs.as_array().tolist() == [[0, 2], [1, 3]]
