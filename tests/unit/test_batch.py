"""Tests for per-item failure isolation in batches."""

import dataclasses

import pytest

from s3_file_manager.batch import BatchCoordinator, summarize
from s3_file_manager.exceptions import RetryableError
from s3_file_manager.results import FailedItem


class TestSummarize:
    def test_nothing_to_do(self):
        result = summarize("Upload", [], [])
        assert result.success
        assert result.message == "Upload: nothing to do"

    def test_all_succeeded(self):
        result = summarize("Upload", ["a", "b"], [])
        assert result.success
        assert result.message == "Upload: all 2 item(s) succeeded"

    def test_some_failed_is_still_success(self):
        result = summarize("Upload", ["a"], [FailedItem("b", ValueError())])
        assert result.success
        assert "some item(s) failed (1 of 2)" in result.message

    def test_all_failed(self):
        result = summarize("Upload", [], [FailedItem("a", ValueError())])
        assert not result.success
        assert "all 1 item(s) failed" in result.message
        assert "enable verbose logging" in result.message


class TestBatchCoordinator:
    def test_results_follow_item_order(self, ctx):
        batch = BatchCoordinator(ctx, max_workers=4)
        result = batch.run_all(["c", "a", "b"], lambda item: f"done/{item}")
        assert result.succeeded_paths == ("done/c", "done/a", "done/b")
        assert result.failed_items == ()

    def test_none_return_uses_identifier(self, ctx):
        result = BatchCoordinator(ctx).run_all(
            [1, 2], lambda item: None, identify=lambda item: f"item-{item}"
        )
        assert result.succeeded_paths == ("item-1", "item-2")

    def test_failures_never_stop_the_batch(self, ctx, mock_logger):
        seen = []

        def operation(item):
            seen.append(item)
            if item % 2:
                raise RetryableError(f"odd {item}")
            return str(item)

        result = BatchCoordinator(ctx).run_all(range(6), operation, label="Numbers")

        assert sorted(seen) == list(range(6))
        assert result.succeeded_paths == ("0", "2", "4")
        assert result.failed_identifiers == ("1", "3", "5")
        assert str(result.failed_items[0].cause) == "odd 1"
        assert result.success
        summary = mock_logger.warning.call_args[0]
        assert summary[1] == "Numbers"
        assert summary[3] == "1, 3, 5"

    def test_all_succeeded_logs_info(self, ctx, mock_logger):
        BatchCoordinator(ctx).run_all(["a"], str, label="Copy")
        mock_logger.info.assert_called_with("Copy: all 1 item(s) succeeded")

    def test_verbose_logs_each_skipped_item(self, ctx, verbose_config, mock_logger):
        verbose_ctx = dataclasses.replace(ctx, config=verbose_config)

        def fail(item):
            raise RetryableError("nope")

        BatchCoordinator(verbose_ctx).run_all(["a", "b"], fail, label="Job")
        skipped = [
            c for c in mock_logger.warning.call_args_list
            if c[0][0] == "%s: skipping %s: %s"
        ]
        assert len(skipped) == 2

    def test_empty_batch(self, ctx):
        result = BatchCoordinator(ctx).run_all([], str)
        assert result.success
        assert result.succeeded_paths == ()

    @pytest.mark.parametrize("count", [1, 40])
    def test_pool_size_is_bounded(self, ctx, count):
        batch = BatchCoordinator(ctx, max_workers=3)
        result = batch.run_all(range(count), str)
        assert len(result.succeeded_paths) == count
