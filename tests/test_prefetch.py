"""Tests for lookahead selection, re-targeting and hand-off of prefetches."""

from conftest import FakeDownloader, local, stream
from streamqueue.core.playback import PlaybackState
from streamqueue.core.prefetch import PrefetchCoordinator
from streamqueue.core.queue_manager import QueueManager
from streamqueue.media.downloader import DownloadStatus
from streamqueue.models.item import RepeatMode


class Repeat:
    def __init__(self, mode: RepeatMode = RepeatMode.OFF):
        self.mode = mode

    def __call__(self) -> RepeatMode:
        return self.mode


def setup(cache, downloader, items, current=0, enabled=True, repeat=None):
    queue = QueueManager()
    queue.add(items)
    if current is not None:
        queue.jump(current)
    coordinator = PrefetchCoordinator(
        queue, cache, downloader, repeat_mode=repeat or Repeat(), enabled=enabled
    )
    return queue, coordinator


def test_enable_then_play_prefetches_next_item_once(cache, downloader):
    a, b = stream("a"), stream("b")
    queue, coordinator = setup(cache, downloader, [a, b], enabled=False)

    coordinator.on_playback_state_changed(PlaybackState.PLAYING)
    assert downloader.started == []

    coordinator.enabled = True
    coordinator.on_playback_state_changed(PlaybackState.PLAYING)
    assert downloader.started_identities == [b.identity]
    assert coordinator.target.identity == b.identity

    queue.jump(1)
    handoff = coordinator.on_current_item_changed(queue.current)
    assert handoff is not None
    assert handoff.identity == b.identity
    assert handoff.handle is downloader.started[0]["handle"]
    assert coordinator.target is None

    coordinator.reevaluate()
    assert len(downloader.started) == 1


def test_inactive_states_do_not_trigger(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    for state in (PlaybackState.IDLE, PlaybackState.STOPPED, PlaybackState.ENDED):
        coordinator.on_playback_state_changed(state)
    assert downloader.started == []
    coordinator.on_playback_state_changed(PlaybackState.BUFFERING)
    assert len(downloader.started) == 1


def test_reevaluate_is_idempotent(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    first = coordinator.reevaluate()
    second = coordinator.reevaluate()
    assert first is second
    assert len(downloader.started) == 1
    assert downloader.cancelled == []


def test_local_file_candidate_is_not_prefetched(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), local("b")])
    assert coordinator.reevaluate() is None
    assert downloader.started == []
    assert coordinator.target is None


def test_end_of_queue_without_repeat_prefetches_nothing(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")], current=1)
    assert coordinator.lookahead_candidate() is None
    assert coordinator.reevaluate() is None


def test_queue_repeat_wraps_lookahead_to_first_item(cache, downloader):
    a, b = stream("a"), stream("b")
    repeat = Repeat(RepeatMode.QUEUE)
    _, coordinator = setup(cache, downloader, [a, b], current=1, repeat=repeat)
    assert coordinator.lookahead_candidate() is a
    coordinator.reevaluate()
    assert downloader.started_identities == [a.identity]


def test_queue_repeat_with_one_item_targets_that_item(cache, downloader):
    a = stream("a")
    repeat = Repeat(RepeatMode.QUEUE)
    _, coordinator = setup(cache, downloader, [a], repeat=repeat)
    assert coordinator.lookahead_candidate() is a
    coordinator.reevaluate()
    assert downloader.started_identities == [a.identity]


def test_first_item_is_the_candidate_before_the_first_jump(cache, downloader):
    a, b = stream("a"), stream("b")
    _, coordinator = setup(cache, downloader, [a, b], current=None)
    assert coordinator.lookahead_candidate() is a


def test_track_repeat_does_not_wrap(cache, downloader):
    repeat = Repeat(RepeatMode.TRACK)
    _, coordinator = setup(
        cache, downloader, [stream("a"), stream("b")], current=1, repeat=repeat
    )
    assert coordinator.lookahead_candidate() is None


def test_new_candidate_supersedes_previous_target(cache, downloader):
    a, b, c = stream("a"), stream("b"), stream("c")
    queue, coordinator = setup(cache, downloader, [a, b, c])
    coordinator.reevaluate()
    old_handle = coordinator.target.handle

    queue.move_item(2, 1)
    coordinator.reevaluate()

    assert downloader.started_identities == [b.identity, c.identity]
    assert downloader.cancelled == [old_handle]
    assert old_handle.status is DownloadStatus.CANCELLED
    assert coordinator.target.identity == c.identity


def test_identity_uses_explicit_track_id(cache, downloader):
    a = stream("a")
    b1 = stream("b", track_id="trk-b")
    b2 = stream("b-mirror", track_id="trk-b")
    queue, coordinator = setup(cache, downloader, [a, b1, b2])
    coordinator.reevaluate()
    queue.remove_item(1)
    coordinator.reevaluate()
    # Same track from another URL is already prefetched
    assert downloader.started_identities == ["trk-b"]


def test_download_request_carries_cache_path_and_hints(cache, downloader):
    b = stream(
        "b",
        track_id="trk-b",
        file_type="flac",
        bitrate_kbps=1411,
        duration_seconds=215.5,
        asset_options={"headers": {"Authorization": "Bearer t"}},
    )
    _, coordinator = setup(cache, downloader, [stream("a"), b])
    coordinator.reevaluate()

    call = downloader.started[0]
    assert call["source_url"] == b.source_url
    assert call["destination_path"] == cache.cache_dir / "trk-b.flac"
    assert call["extension"] == "flac"
    assert call["bitrate_kbps"] == 1411
    assert call["duration_seconds"] == 215.5
    assert call["asset_options"] == {"headers": {"Authorization": "Bearer t"}}
    assert coordinator.target.cache_path == cache.cache_dir / "trk-b.flac"


def test_untagged_item_is_cached_under_fingerprint(cache, downloader):
    b = stream("b")
    _, coordinator = setup(cache, downloader, [stream("a"), b])
    coordinator.reevaluate()
    call = downloader.started[0]
    assert call["identity"] == b.source_url
    assert call["destination_path"] == cache.resolve_path(b.source_url)


def test_disabling_cancels_in_flight_download(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    handle = coordinator.reevaluate()
    coordinator.enabled = False
    assert handle.cancelled
    assert coordinator.target is None
    assert coordinator.reevaluate() is None


def test_clearing_queue_cancels_in_flight_download(cache, downloader):
    queue, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    handle = coordinator.reevaluate()
    queue.clear_queue()
    assert coordinator.on_current_item_changed(None) is None
    assert handle.cancelled
    assert coordinator.target is None


def test_landing_elsewhere_retargets(cache, downloader):
    a, b, c, d = stream("a"), stream("b"), stream("c"), stream("d")
    queue, coordinator = setup(cache, downloader, [a, b, c, d])
    first = coordinator.reevaluate()
    queue.jump(2)
    assert coordinator.on_current_item_changed(queue.current) is None
    assert first.cancelled
    assert coordinator.target.identity == d.identity


def test_completed_download_is_handed_off_as_complete(cache, downloader):
    queue, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    handle = coordinator.reevaluate()
    handle.bytes_written = 4096
    handle.finish(DownloadStatus.COMPLETED)

    queue.next()
    handoff = coordinator.on_current_item_changed(queue.current)
    assert handoff.complete
    assert handoff.bytes_available == 4096


def test_partial_download_is_handed_off_in_flight(cache, downloader):
    queue, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    handle = coordinator.reevaluate()
    handle.mark_running()
    queue.next()
    handoff = coordinator.on_current_item_changed(queue.current)
    assert handoff is not None
    assert not handoff.complete
    assert not handle.cancelled


def test_failed_download_degrades_to_network_open(cache, downloader):
    queue, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    handle = coordinator.reevaluate()
    handle.finish(DownloadStatus.FAILED, ConnectionError("reset"))

    # Still tracked, so it is not restarted in a loop
    coordinator.reevaluate()
    assert len(downloader.started) == 1

    queue.next()
    assert coordinator.on_current_item_changed(queue.current) is None
    assert coordinator.target is None


def test_downloader_start_failure_is_swallowed(cache):
    downloader = FakeDownloader(fail_on_start=True)
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")])
    assert coordinator.reevaluate() is None
    assert coordinator.target is None


def test_stale_completion_does_not_touch_new_target(cache, downloader):
    items = [stream("a"), stream("b"), stream("c"), stream("d")]
    queue, coordinator = setup(cache, downloader, items)
    old = coordinator.reevaluate()
    queue.jump(2)
    coordinator.on_current_item_changed(queue.current)
    new_target = coordinator.target

    old.finish(DownloadStatus.COMPLETED)
    assert old.status is DownloadStatus.CANCELLED
    assert coordinator.target is new_target


def test_toggling_on_reevaluates(cache, downloader):
    _, coordinator = setup(cache, downloader, [stream("a"), stream("b")], enabled=False)
    assert coordinator.reevaluate() is None
    coordinator.enabled = True
    assert len(downloader.started) == 1
    coordinator.enabled = True
    assert len(downloader.started) == 1
