from __future__ import annotations

import io
from threading import Event
from types import SimpleNamespace
import unittest
from unittest import mock

from focusflow.alerts import AlertLoop, Alerts, Notifier, SoundPlayer


class TestNotifier(unittest.TestCase):
    def test_fallback_when_command_fails(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("focusflow.alerts.platform.system", return_value="Linux"), mock.patch(
            "focusflow.alerts.shutil.which", return_value="/usr/bin/notify-send"
        ), mock.patch(
            "focusflow.alerts.subprocess.run", return_value=SimpleNamespace(returncode=1)
        ):
            notifier.notify("FocusFlow", "专注完成")

        self.assertIn("[通知] FocusFlow: 专注完成", stream.getvalue())

    def test_no_fallback_when_command_succeeds(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("focusflow.alerts.platform.system", return_value="Linux"), mock.patch(
            "focusflow.alerts.shutil.which", return_value="/usr/bin/notify-send"
        ), mock.patch(
            "focusflow.alerts.subprocess.run", return_value=SimpleNamespace(returncode=0)
        ):
            notifier.notify("FocusFlow", "专注完成")

        self.assertEqual(stream.getvalue(), "")

    def test_fallback_when_command_missing(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("focusflow.alerts.platform.system", return_value="Linux"), mock.patch(
            "focusflow.alerts.shutil.which", return_value=None
        ):
            notifier.notify("FocusFlow", "休息结束")

        self.assertIn("[通知] FocusFlow: 休息结束", stream.getvalue())

    def test_break_end_is_urgent_and_labelled(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("focusflow.alerts.platform.system", return_value="Linux"), mock.patch(
            "focusflow.alerts.shutil.which", return_value="/usr/bin/notify-send"
        ), mock.patch(
            "focusflow.alerts.subprocess.run", return_value=SimpleNamespace(returncode=0)
        ) as run:
            sent = notifier.notify_phase("break", "⏰ 休息结束！", "下一个任务：写周报")

        self.assertTrue(sent)
        command = run.call_args.args[0]
        self.assertEqual(command[:3], ["notify-send", "--app-name=FocusFlow", "--urgency=critical"])
        self.assertEqual(command[3], "⏰ 休息结束！")
        self.assertEqual(command[4], "休息阶段结束\n下一个任务：写周报")

    def test_focus_end_on_macos_carries_subtitle(self) -> None:
        notifier = Notifier(stream=io.StringIO())

        with mock.patch("focusflow.alerts.platform.system", return_value="Darwin"), mock.patch(
            "focusflow.alerts.shutil.which", return_value="/usr/bin/osascript"
        ), mock.patch(
            "focusflow.alerts.subprocess.run", return_value=SimpleNamespace(returncode=0)
        ) as run:
            notifier.notify_phase("focus", "⏰ 专注完成！", '说 "好"')

        command = run.call_args.args[0]
        self.assertEqual(command[:2], ["osascript", "-e"])
        self.assertIn('subtitle "专注阶段结束"', command[2])
        self.assertIn('\\"好\\"', command[2])

    def test_phase_fallback_names_the_phase(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("focusflow.alerts.platform.system", return_value="Windows"):
            sent = notifier.notify_phase("focus", "⏰ 专注完成！", "干得漂亮！")

        self.assertFalse(sent)
        self.assertEqual(stream.getvalue(), "[通知] ⏰ 专注完成！（专注阶段结束）: 干得漂亮！\n")


class TestSoundPlayer(unittest.TestCase):
    def test_cues_write_bells(self) -> None:
        stream = io.StringIO()
        player = SoundPlayer(stream=stream)
        player.phase_start("focus")
        player.phase_end("break")
        self.assertEqual(player.played, ["focus_start", "break_end"])
        self.assertEqual(stream.getvalue(), "\a\a\a")

    def test_disabled_player_records_silently(self) -> None:
        stream = io.StringIO()
        player = SoundPlayer(stream=stream, enabled=False)
        player.play("alert")
        self.assertEqual(player.played, ["alert"])
        self.assertEqual(stream.getvalue(), "")


class TestAlertLoop(unittest.TestCase):
    def test_repeats_until_cancelled(self) -> None:
        played = Event()
        calls: list[int] = []

        def play() -> None:
            calls.append(1)
            if len(calls) >= 2:
                played.set()

        loop = AlertLoop(play, interval_seconds=0.01)
        loop.start()
        loop.start()
        self.assertTrue(played.wait(2.0))
        self.assertTrue(loop.active)

        loop.cancel()
        self.assertFalse(loop.active)
        loop.cancel()

    def test_alerts_acknowledge_stops_loop(self) -> None:
        sounds = SoundPlayer(enabled=False)
        stream = io.StringIO()
        alerts = Alerts(sounds=sounds, notifier=Notifier(stream=stream), notify=False, interval_seconds=60)

        alerts.phase_finished("focus", "⏰ 专注完成！", "休息一下吧。")
        self.assertTrue(alerts.loop.active)
        self.assertEqual(sounds.played[0], "focus_end")
        self.assertEqual(stream.getvalue(), "")

        alerts.acknowledge()
        self.assertFalse(alerts.loop.active)

    def test_alerts_pass_the_finished_phase_to_notifier(self) -> None:
        notifier = mock.Mock(spec=Notifier)
        alerts = Alerts(sounds=SoundPlayer(enabled=False), notifier=notifier, notify=True, interval_seconds=60)
        self.addCleanup(alerts.acknowledge)

        alerts.phase_finished("break", "⏰ 休息结束！", "下一个任务：复盘")
        notifier.notify_phase.assert_called_once_with("break", "⏰ 休息结束！", "下一个任务：复盘")


if __name__ == "__main__":
    unittest.main()
