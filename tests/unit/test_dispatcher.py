import pytest

from conftest import drain, make_image
from imageforge.core.exceptions import ValidationError
from imageforge.modules.imagery.models import ProcessingSettings
from imageforge.pipeline.tasks import ALL_FILES


@pytest.mark.asyncio
async def test_batch_is_sequential_and_ordered(storage, events, dispatcher):
    make_image(storage.input_path("b.jpg"), fmt="JPEG")
    make_image(storage.input_path("a.png"))

    count = dispatcher.dispatch(ALL_FILES, ProcessingSettings())
    assert count == 2
    await dispatcher.join()

    received = [(e["type"], e["file"]) for e in drain(events)]
    assert received == [
        ("start", "a.png"),
        ("step", "a.png"),
        ("complete", "a.png"),
        ("start", "b.jpg"),
        ("step", "b.jpg"),
        ("complete", "b.jpg"),
    ]
    assert (storage.output_dir / "a.jpg").exists()
    assert (storage.output_dir / "b.jpg").exists()
    assert list(storage.input_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_dispatch_returns_before_processing(storage, events, dispatcher):
    make_image(storage.input_path("slow.png"))

    count = dispatcher.dispatch(ALL_FILES, ProcessingSettings())

    assert count == 1
    assert dispatcher.running_batches == 1
    assert drain(events) == []

    await dispatcher.join()
    assert dispatcher.running_batches == 0


@pytest.mark.asyncio
async def test_empty_input_dispatches_nothing(events, dispatcher):
    count = dispatcher.dispatch(ALL_FILES, ProcessingSettings(upscale=True))
    await dispatcher.join()

    assert count == 0
    assert dispatcher.running_batches == 0
    assert drain(events) == []


@pytest.mark.asyncio
async def test_failure_does_not_stop_the_batch(storage, events, dispatcher):
    storage.input_path("a.png").write_bytes(b"corrupt")
    make_image(storage.input_path("b.png"))

    dispatcher.dispatch(ALL_FILES, ProcessingSettings())
    await dispatcher.join()

    terminal = [(e["type"], e["file"]) for e in drain(events) if e["type"] in ("complete", "error")]
    assert terminal == [("error", "a.png"), ("complete", "b.png")]
    assert storage.input_path("a.png").exists()
    assert not storage.input_path("b.png").exists()


@pytest.mark.asyncio
async def test_single_file_target(storage, events, dispatcher):
    make_image(storage.input_path("one.png"))
    make_image(storage.input_path("two.png"))

    assert dispatcher.dispatch("one.png", ProcessingSettings()) == 1
    await dispatcher.join()

    assert {e["file"] for e in drain(events)} == {"one.png"}
    assert storage.input_path("two.png").exists()


def test_resolve_rejects_path_components(dispatcher):
    with pytest.raises(ValidationError):
        dispatcher.resolve("../outside.png")


@pytest.mark.asyncio
async def test_config_change_applies_to_next_file(tmp_path, storage, events, dispatcher, config_store, copying_upscaler):
    make_image(storage.input_path("a.png"))
    make_image(storage.input_path("b.png"))

    # Swap in a working upscaler as soon as the first file has started
    original_publish = dispatcher.broadcaster.publish

    def publish(event):
        original_publish(event)
        if event.type == "start" and event.file == "a.png":
            config_store.update(copying_upscaler.upscayl_bin)

    dispatcher.broadcaster.publish = publish

    dispatcher.dispatch(ALL_FILES, ProcessingSettings(upscale=True))
    await dispatcher.join()

    steps = [(e["file"], e["message"]) for e in drain(events) if e["type"] == "step"]
    assert steps[0] == ("a.png", "⚠️ Upscayl not found - skipping upscaling")
    assert ("b.png", "Upscaling...") in steps
