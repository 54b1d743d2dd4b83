from ui.widgets import ArchiveChoice, ArchiveDialog, ErrorListWidget, TransportWidget


def test_error_list_keeps_latest_three(qapp):
    errors = ErrorListWidget(limit=3)
    for i in range(5):
        errors.add_error(f"error {i}")
    assert errors.messages() == ["error 2", "error 3", "error 4"]


def test_error_notice_can_be_dismissed(qapp):
    errors = ErrorListWidget()
    errors.add_error("Pedal disconnected")
    errors.add_error("Archive failed: busy")
    notice = errors._notices[0]
    notice.dismiss_btn.click()
    assert errors.messages() == ["Archive failed: busy"]
    errors.clear()
    assert errors.messages() == []


def test_transport_widget_time_and_progress(qapp):
    transport = TransportWidget(3, 3, 1)
    transport.set_time(30.0, 120.0)
    assert transport.time_label.text() == "00:30 / 02:00"
    assert transport.progress.value() == 250
    transport.set_time(0.0, 0.0)
    assert transport.progress.value() == 0


def test_transport_widget_controls(qapp):
    transport = TransportWidget(3, 5, 1)
    speeds = []
    transport.speedIndexChanged.connect(speeds.append)
    assert transport.speed_combo.currentText() == "1.00x"
    assert transport.forward_btn.text() == "5s >>"
    assert not transport.play_pause_btn.isEnabled()
    transport.set_loaded(True)
    assert transport.play_pause_btn.isEnabled()
    transport.speed_combo.setCurrentIndex(2)
    assert speeds == [2]
    transport.set_play_pause_state(True)
    assert transport.play_pause_btn.text() == "Pause"


def test_archive_dialog_records_choice(qapp):
    dialog = ArchiveDialog("memo.wav")
    assert dialog.choice == ArchiveChoice.CONTINUE
    dialog.exit_btn.click()
    assert dialog.choice == ArchiveChoice.EXIT
    dialog.continue_btn.click()
    assert dialog.choice == ArchiveChoice.CONTINUE
