import asyncio

from cloaker_app.queue.models import ClickEvent
from cloaker_app.services.background import BackgroundRunner


def event(url_id, campaign_id=1):
    return ClickEvent(campaign_id=campaign_id, url_id=url_id, redirect_method="direct", ip_address="10.0.0.1")


class TestClickWorker:
    """Storing queued click events"""

    def test_events_become_click_records(self, container):
        queue_name = container.settings.queue_name

        async def scenario():
            for url_id in (1, 1, 2):
                await container.queue.publish(queue_name, event(url_id))
            stored = await container.worker.run_once()
            return stored, await container.queue.get_queue_length(queue_name), await container.store.click_counts(1)

        stored, left, counts = asyncio.run(scenario())
        assert stored == 3
        assert left == 0
        assert counts == {1: 2, 2: 1}
        assert container.worker.processed_count == 3

    def test_failed_batch_is_retried(self, container, monkeypatch):
        queue_name = container.settings.queue_name

        async def failing_record_clicks(events):
            raise RuntimeError("database unavailable")

        async def scenario():
            await container.queue.publish(queue_name, event(5))
            monkeypatch.setattr(container.store, "record_clicks", failing_record_clicks)
            stored = await container.worker.process_events()
            waiting = await container.queue.get_queue_length(queue_name)

            monkeypatch.undo()
            retried = await container.worker.process_events()
            return stored, waiting, retried, await container.store.click_counts(1)

        stored, waiting, retried, counts = asyncio.run(scenario())
        assert stored == 0
        assert waiting == 1
        assert retried == 1
        assert counts == {5: 1}

    def test_batch_size_is_respected(self, container):
        queue_name = container.settings.queue_name
        container.worker.batch_size = 2

        async def scenario():
            for url_id in range(5):
                await container.queue.publish(queue_name, event(url_id))
            first = await container.worker.process_events()
            return first, await container.queue.get_queue_length(queue_name)

        assert asyncio.run(scenario()) == (2, 3)

    def test_start_stops_on_request(self, container):
        container.worker.interval = 0.01

        async def scenario():
            task = asyncio.create_task(container.worker.start())
            await asyncio.sleep(0.05)
            container.worker.stop()
            await asyncio.wait_for(task, timeout=1)
            return container.worker.running

        assert asyncio.run(scenario()) is False

    def test_shutdown_flushes_everything(self, container):
        queue_name = container.settings.queue_name

        async def scenario():
            url = await container.store.create_url({
                "name": "late",
                "target_url": "https://late.example.com/",
                "click_limit": 100,
                "original_click_limit": 100,
                "status": "active",
            })
            await container.clicks.increment_clicks(url.id)
            await container.queue.publish(queue_name, event(url.id, campaign_id=9))
            await container.shutdown()
            return url, await container.store.get_url(url.id), await container.store.click_counts(9)

        url, stored, counts = asyncio.run(scenario())
        assert stored.clicks == 1
        assert counts == {url.id: 1}


class TestBackgroundRunner:

    def test_failures_are_contained(self):
        runner = BackgroundRunner()
        results = []

        async def boom():
            raise ValueError("nope")

        async def ok():
            results.append("done")

        async def scenario():
            runner.submit(boom(), label="boom")
            runner.submit(ok(), label="ok")
            await runner.drain()
            return runner.pending

        assert asyncio.run(scenario()) == 0
        assert results == ["done"]

    def test_submit_without_loop_is_dropped(self):
        runner = BackgroundRunner()

        async def never():
            raise AssertionError("must not run")

        assert runner.submit(never(), label="orphan") is None
        assert runner.pending == 0
