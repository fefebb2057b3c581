"""Tests for staging lists: element edits, shifts and commit ordering.

Lists nested anywhere in a principal come back as StagedListView, so appends,
inserts, removals and edits inside their elements are buffered like any
other write.
"""
import copy
import pytest
from collections import deque

from objectstage import (
    DELETED,
    DIRTY,
    ImmutablePropertyError,
    NEW,
    SequenceIndexError,
    StagedListView,
    StagedView,
    UsageError,
    is_staged,
    staged,
)


@pytest.fixture
def catalog():
    """Principal with a flat list and a list of objects."""
    return {'tags': ['a'], 'rows': [{'n': 1}, {'n': 2}]}


@pytest.fixture
def catalog_snapshot(catalog):
    return copy.deepcopy(catalog)


class TestListIsolation:
    """Nothing done through a staged list reaches the live list before commit."""

    def test_append_and_nested_edit_are_staged(self, catalog, catalog_snapshot):
        """Appending and editing an element inside a list leave the principal alone."""
        view = staged(catalog)
        view['tags'].append('b')
        view['rows'][0]['n'] = 10

        assert catalog == catalog_snapshot
        assert view.to_dict() == {'tags': ['a', 'b'], 'rows': [{'n': 10}, {'n': 2}]}

        view.commit()
        assert catalog == {'tags': ['a', 'b'], 'rows': [{'n': 10}, {'n': 2}]}
        assert view.changed is False

    def test_nested_views(self, catalog):
        """Lists come back as list views, their object elements as mapping views."""
        view = staged(catalog)
        rows = view['rows']
        assert isinstance(rows, StagedListView)
        assert isinstance(rows[0], StagedView)
        assert rows is view['rows']
        assert is_staged(rows)
        assert rows.principal is catalog['rows']

    def test_list_root(self):
        """A list can be staged directly."""
        items = [1, 2, 3]
        view = staged(items)
        assert isinstance(view, StagedListView)
        view[0] = 100
        view.extend([4, 5])
        assert items == [1, 2, 3]
        assert view == [100, 2, 3, 4, 5]
        view.commit()
        assert items == [100, 2, 3, 4, 5]

    def test_other_mutable_sequences(self):
        """Any MutableSequence principal is staged index by index."""
        queue = deque(['x'])
        view = staged({'queue': queue})
        view['queue'].append('y')
        assert list(queue) == ['x']
        view.commit()
        assert list(queue) == ['x', 'y']


class TestListProtocol:
    """Staged lists behave like lists."""

    def test_reads(self):
        """Indexing, negative indices, slices, len, iteration and membership."""
        tags = staged({'tags': ['a', 'b', 'c']})['tags']
        assert tags[0] == 'a'
        assert tags[-1] == 'c'
        assert tags[1:] == ['b', 'c']
        assert len(tags) == 3
        assert list(tags) == ['a', 'b', 'c']
        assert 'b' in tags
        assert tags.index('c') == 2

    def test_out_of_range(self):
        """Out-of-range reads and writes raise IndexError."""
        tags = staged({'tags': ['a']})['tags']
        with pytest.raises(IndexError):
            tags[1]
        with pytest.raises(IndexError):
            tags[1] = 'x'
        with pytest.raises(IndexError):
            del tags[3]

    def test_non_integer_index(self):
        """Only integer indices address list elements."""
        tags = staged({'tags': ['a']})['tags']
        with pytest.raises(TypeError):
            tags['0']
        with pytest.raises(TypeError):
            tags[True]

    def test_slice_assignment_unsupported(self):
        """Slice assignment raises UsageError."""
        tags = staged({'tags': ['a', 'b']})['tags']
        with pytest.raises(UsageError):
            tags[0:1] = ['z']

    def test_pop_clear_and_remove(self):
        """The MutableSequence mixins stage their effects."""
        principal = {'tags': ['a', 'b', 'c', 'd']}
        view = staged(principal)
        tags = view['tags']
        assert tags.pop() == 'd'
        tags.remove('a')
        assert tags == ['b', 'c']
        assert principal['tags'] == ['a', 'b', 'c', 'd']
        view.commit()
        assert principal['tags'] == ['b', 'c']

        tags.clear()
        assert len(tags) == 0
        view.commit()
        assert principal['tags'] == []

    def test_equality(self):
        """A staged list equals sequences with the same items."""
        tags = staged({'tags': ['a', 'b']})['tags']
        assert tags == ['a', 'b']
        assert tags == ('a', 'b')
        assert tags != ['a']
        assert tags != 'ab'

    def test_control_keys(self, catalog):
        """Control keys work on list views too."""
        view = staged(catalog)
        tags = view['tags']
        tags.append('b')
        assert tags['$isStaged'] is True
        assert tags['$changed'] is True
        assert tags['$propertyState'](1) is NEW
        tags['$commit']()
        assert catalog['tags'] == ['a', 'b']


class TestListShifts:
    """Inserting or removing in the middle shifts staged elements."""

    def test_insert_moves_nested_edits_with_element(self, catalog):
        """Staged edits inside an element follow it to its new index."""
        view = staged(catalog)
        rows = view['rows']
        first = rows[0]
        first['n'] = 10
        rows.insert(0, {'n': 0})

        assert rows[1] is first
        assert first.node.path == ('rows', 1)
        assert rows.to_list() == [{'n': 0}, {'n': 10}, {'n': 2}]
        assert catalog['rows'] == [{'n': 1}, {'n': 2}]

        view.commit()
        assert catalog['rows'] == [{'n': 0}, {'n': 10}, {'n': 2}]

    def test_remove_from_middle(self):
        """Removing shifts later items down and deletes the tail on commit."""
        principal = {'tags': ['a', 'b', 'c']}
        view = staged(principal)
        tags = view['tags']
        del tags[0]
        assert tags == ['b', 'c']
        assert tags.property_state(0) is DIRTY
        assert tags.property_state(2) is DELETED
        view.commit()
        assert principal['tags'] == ['b', 'c']

    def test_removed_element_view_detaches(self, catalog):
        """The view of a removed element is no longer usable."""
        rows = staged(catalog)['rows']
        gone = rows[0]
        del rows[0]
        assert rows[0]['n'] == 2
        assert 'detached' in repr(gone)

    def test_slice_delete(self):
        """Deleting a slice removes every index in it."""
        principal = {'tags': ['a', 'b', 'c', 'd']}
        view = staged(principal)
        del view['tags'][1:3]
        assert view['tags'] == ['a', 'd']
        view.commit()
        assert principal['tags'] == ['a', 'd']

    def test_tail_deletions_commit_from_the_end(self):
        """Tail deletions apply last-index first whatever order they were touched in."""
        principal = {'tags': ['a', 'b', 'c']}
        view = staged(principal)
        tags = view['tags']
        assert tags[1] == 'b'
        tags.pop()
        tags[1] = 'x'
        tags.pop()
        assert tags == ['a']
        view.commit()
        assert principal['tags'] == ['a']

    def test_pop_then_append(self):
        """Re-filling a popped index writes over the live element."""
        principal = {'tags': ['a', 'b']}
        view = staged(principal)
        tags = view['tags']
        tags.pop()
        tags.append('z')
        assert tags.property_state(1) is DIRTY
        view.commit()
        assert principal['tags'] == ['a', 'z']

    def test_pending_changes_in_index_order(self):
        """Pending changes of a list are reported in commit order."""
        view = staged({'tags': []})
        tags = view['tags']
        tags.append('a')
        tags.append('b')
        tags.insert(0, 'first')
        assert [(c.path, c.state) for c in view.pending_changes()] == [
            (('tags', 0), NEW),
            (('tags', 1), NEW),
            (('tags', 2), NEW),
        ]
        view.commit()
        assert view.principal['tags'] == ['first', 'a', 'b']


class TestSequenceNode:
    """Node-level rules that keep list indices contiguous."""

    def test_direct_delete_only_at_tail(self):
        """Deleting a non-last index directly on the node is refused."""
        view = staged({'tags': ['a', 'b']})
        node = view['tags'].node
        with pytest.raises(ImmutablePropertyError):
            node.delete_child(0)
        assert node.delete_child(1) is True

    def test_set_beyond_length_refused(self):
        """Writes that would leave a gap raise SequenceIndexError."""
        view = staged({'tags': ['a']})
        node = view['tags'].node
        with pytest.raises(SequenceIndexError) as exc_info:
            node.set_child(3, 'x')
        assert exc_info.value.length == 1
        assert isinstance(exc_info.value, IndexError)
        node.set_child(1, 'b')
        assert view['tags'] == ['a', 'b']

    def test_insert_on_mapping_node(self, view):
        """Index shifts only apply to sequence nodes."""
        with pytest.raises(UsageError):
            view.node.insert_child(0, 'x')
