"""
Workspace Store Tests
"""
import asyncio

import pytest

from radnotebook.workspace.mirror import is_placeholder
from radnotebook.workspace.store import WorkspaceStore


@pytest.fixture
def store(fake_gateway):
    return WorkspaceStore(fake_gateway)


@pytest.fixture
def seeded(fake_gateway):
    """Two projects, the first with two analyses (one holding sections) and a dataset"""
    p1 = fake_gateway.seed('projects', name='Chest CT')
    p2 = fake_gateway.seed('projects', name='Brain MRI')
    a1 = fake_gateway.seed('analyses', project_id=p1['id'], name='Nodules', labels=[])
    a2 = fake_gateway.seed('analyses', project_id=p1['id'], name='Emphysema', labels=[])
    a3 = fake_gateway.seed('analyses', project_id=p2['id'], name='Lesions', labels=[])
    d1 = fake_gateway.seed('datasets', project_id=p1['id'], name='LIDC')
    s1 = fake_gateway.seed('sections', analysis_id=a1['id'], title='Findings', content='4 mm nodule.',
                           section_order=0)
    s2 = fake_gateway.seed('sections', analysis_id=a1['id'], title='Impression', content='Benign.',
                           section_order=1)
    return {'p1': p1, 'p2': p2, 'a1': a1, 'a2': a2, 'a3': a3, 'd1': d1, 's1': s1, 's2': s2}


class TestLoading:
    """Test fetching and selection"""

    @pytest.mark.asyncio
    async def test_load_sorts_projects_newest_first(self, store, seeded):
        assert await store.load() is True
        assert store.projects.ids() == [seeded['p2']['id'], seeded['p1']['id']]
        assert store.analyses.items == []

    @pytest.mark.asyncio
    async def test_load_failure_notifies(self, store, fake_gateway):
        fake_gateway.fail[('list', 'projects')] = 'offline'
        assert await store.load() is False
        assert store.notifier.items[0].description == 'Failed to load projects'

    @pytest.mark.asyncio
    async def test_select_project_fetches_children(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])

        assert store.selected_project['name'] == 'Chest CT'
        assert store.analyses.ids() == [seeded['a1']['id'], seeded['a2']['id']]
        assert store.datasets.ids() == [seeded['d1']['id']]
        assert store.sections.items == []

    @pytest.mark.asyncio
    async def test_select_analysis_fetches_sections_in_order(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])

        assert store.selected_analysis['name'] == 'Nodules'
        assert [s['title'] for s in store.sections] == ['Findings', 'Impression']

    @pytest.mark.asyncio
    async def test_switching_project_clears_analysis(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])

        await store.select_project(seeded['p2']['id'])
        assert store.selected_analysis_id is None
        assert store.selected_analysis is None
        assert store.sections.items == []
        assert store.analyses.ids() == [seeded['a3']['id']]
        assert store.datasets.items == []

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self, store, seeded):
        await store.load()
        first = asyncio.create_task(store.select_project(seeded['p1']['id']))
        await asyncio.sleep(0)

        await store.select_project(seeded['p2']['id'])
        await first

        assert store.selected_project_id == seeded['p2']['id']
        assert store.analyses.ids() == [seeded['a3']['id']]

    @pytest.mark.asyncio
    async def test_failed_section_fetch_empties_mirror(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])
        assert len(store.sections) == 2

        fake_gateway.fail[('list', 'sections')] = 'offline'
        await store.select_analysis(seeded['a2']['id'])
        assert store.selected_analysis_id == seeded['a2']['id']
        assert store.sections.items == []
        assert store.notifier.items[-1].description == 'Failed to load sections'

    @pytest.mark.asyncio
    async def test_failed_project_fetch_empties_mirrors(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        assert len(store.analyses) == 2
        assert len(store.datasets) == 1

        fake_gateway.fail[('list', 'analyses')] = 'offline'
        fake_gateway.fail[('list', 'datasets')] = 'offline'
        await store.select_project(seeded['p2']['id'])
        assert store.analyses.items == []
        assert store.datasets.items == []
        assert [n.description for n in store.notifier.items] == ['Failed to load analyses', 'Failed to load datasets']

    @pytest.mark.asyncio
    async def test_deselect(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_project(None)
        assert store.analyses.items == []
        assert store.datasets.items == []


class TestMutations:
    """Test store-level create/update/delete"""

    @pytest.mark.asyncio
    async def test_project_analysis_two_sections(self, store, fake_gateway):
        assert await store.create_project() is True
        project = store.selected_project
        assert project['name'] == 'Untitled Project'
        assert not is_placeholder(project['id'])

        assert await store.create_analysis() is True
        assert store.selected_analysis['name'] == 'New Analysis'

        first = store.create_section()
        second = store.create_section('Impression')
        assert [s['section_order'] for s in store.sections] == [0, 1]
        assert await asyncio.gather(first, second) == [True, True]

        server = sorted(fake_gateway.rows['sections'].values(), key=lambda s: s['section_order'])
        assert [(s['title'], s['section_order']) for s in server] == [('New Section', 0), ('Impression', 1)]
        assert [s['id'] for s in store.sections] == [s['id'] for s in server]

    @pytest.mark.asyncio
    async def test_failed_content_update_reverts_and_notifies(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])
        fake_gateway.fail[('update', 'sections')] = 'row level security'

        task = store.update_section(seeded['s1']['id'], content='Edited')
        assert store.sections.get(seeded['s1']['id'])['content'] == 'Edited'

        assert await task is False
        assert store.sections.get(seeded['s1']['id'])['content'] == '4 mm nodule.'
        assert store.notifier.items[-1].description == 'Failed to update section'

    @pytest.mark.asyncio
    async def test_reorder_sections(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])

        assert await store.reorder_sections([seeded['s2']['id'], seeded['s1']['id']]) is True
        assert [s['title'] for s in store.sections] == ['Impression', 'Findings']
        assert [s['section_order'] for s in store.sections] == [0, 1]
        assert fake_gateway.rows['sections'][seeded['s2']['id']]['section_order'] == 0

    @pytest.mark.asyncio
    async def test_delete_selected_project_clears_selection(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])

        task = store.delete_project(seeded['p1']['id'])
        assert store.selected_project_id is None
        assert store.selected_analysis_id is None
        assert store.analyses.items == []
        assert store.sections.items == []

        assert await task is True
        assert store.projects.ids() == [seeded['p2']['id']]

    @pytest.mark.asyncio
    async def test_failed_delete_of_selected_project_restores_everything(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])
        fake_gateway.fail[('delete', 'projects')] = 'denied'

        assert await store.delete_project(seeded['p1']['id']) is False
        assert store.selected_project_id == seeded['p1']['id']
        assert store.selected_analysis_id == seeded['a1']['id']
        assert len(store.projects) == 2
        assert len(store.analyses) == 2
        assert len(store.datasets) == 1
        assert len(store.sections) == 2
        assert store.notifier.items[-1].description == 'Failed to delete project'

    @pytest.mark.asyncio
    async def test_delete_other_project_keeps_selection(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])

        assert await store.delete_project(seeded['p2']['id']) is True
        assert store.selected_project_id == seeded['p1']['id']
        assert len(store.analyses) == 2

    @pytest.mark.asyncio
    async def test_delete_selected_analysis(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])
        fake_gateway.fail[('delete', 'analyses')] = 'denied'

        task = store.delete_analysis(seeded['a1']['id'])
        assert store.selected_analysis_id is None
        assert store.sections.items == []

        assert await task is False
        assert store.selected_analysis_id == seeded['a1']['id']
        assert len(store.sections) == 2

    @pytest.mark.asyncio
    async def test_dataset_crud(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])

        assert await store.create_dataset(description='Chest CT scans') is True
        created = store.datasets.items[-1]
        assert created['name'] == 'Untitled Dataset'

        assert await store.update_dataset(created['id'], name='NLST') is True
        assert fake_gateway.rows['datasets'][created['id']]['name'] == 'NLST'

        assert await store.delete_dataset(created['id']) is True
        assert store.datasets.ids() == [seeded['d1']['id']]

    @pytest.mark.asyncio
    async def test_children_need_a_selection(self, store):
        with pytest.raises(ValueError):
            store.create_analysis()
        with pytest.raises(ValueError):
            store.create_dataset()
        with pytest.raises(ValueError):
            store.create_section()


class TestDerived:
    """Test derived values and bookkeeping"""

    @pytest.mark.asyncio
    async def test_aggregated_text(self, store, seeded):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        await store.select_analysis(seeded['a1']['id'])

        assert store.aggregated_text() == 'Findings\n4 mm nodule.\n\nImpression\nBenign.'

    @pytest.mark.asyncio
    async def test_wait_idle(self, store, seeded):
        await store.load()
        store.create_project('One')
        store.create_project('Two')
        assert not store.idle

        await store.wait_idle()
        assert store.idle
        assert store.pending == 0
        assert not any(is_placeholder(i) for i in store.projects.ids())

    @pytest.mark.asyncio
    async def test_reset(self, store, seeded, fake_gateway):
        await store.load()
        await store.select_project(seeded['p1']['id'])
        fake_gateway.fail[('update', 'projects')] = 'denied'
        await store.update_project(seeded['p1']['id'], name='x')

        store.reset()
        assert store.projects.items == []
        assert store.analyses.items == []
        assert store.selected_project_id is None
        assert store.notifier.items == []
