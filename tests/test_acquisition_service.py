from fakes import JPEG_URL, PNG_URL, WEBP_URL, ScriptedChat
from prompt import ANALYSIS_READY_SENTINEL, GUIDED_START_MESSAGE, READY_MESSAGE
from services.acquisition_service import AcquisitionStateMachine, CancellationToken, Phase, SubmitResult
from services.errors import ModelTransportError
from services.llm_service import ImagePart, ModelReply, TextPart


class ChatFactory:
    def __init__(self, *replies, on_send=None):
        self.replies = replies
        self.on_send = on_send
        self.opened = []

    def __call__(self, system_instruction):
        chat = ScriptedChat(self.replies, on_send=self.on_send)
        self.opened.append((system_instruction, chat))
        return chat

    @property
    def chat(self):
        return self.opened[-1][1]


def _machine(strategies, factory, **kwargs):
    machine = AcquisitionStateMachine(factory, strategies, **kwargs)
    machine.select_strategies(["trend"])
    return machine


def test_full_session_collects_images_in_order(strategies):
    factory = ChatFactory("Upload the 4H chart.", "Now the 1H chart.", "Now the 15m chart.",
                          ANALYSIS_READY_SENTINEL)
    machine = _machine(strategies, factory)

    assert machine.start()
    assert machine.phase == Phase.GATHERING
    assert machine.turns[0].text == "Upload the 4H chart."
    system_instruction, chat = factory.opened[0]
    assert "Trend Rider" in system_instruction
    assert chat.sent[0] == [TextPart(GUIDED_START_MESSAGE)]

    assert machine.submit_image(PNG_URL) == SubmitResult.CONTINUE
    assert machine.submit_image(JPEG_URL) == SubmitResult.CONTINUE
    assert machine.submit_image(WEBP_URL) == SubmitResult.READY

    assert machine.is_ready
    assert machine.images == {0: PNG_URL, 1: JPEG_URL, 2: WEBP_URL}
    assert machine.turns[-1].text == READY_MESSAGE
    assert chat.sent[1] == [ImagePart.from_data_url(PNG_URL)]


def test_sentinel_must_match_exactly(strategies):
    factory = ChatFactory("Upload the daily chart.", "Thanks! [ANALYSIS_READY] soon", f"  {ANALYSIS_READY_SENTINEL}\n")
    machine = _machine(strategies, factory)
    machine.start()

    assert machine.submit_image(PNG_URL) == SubmitResult.CONTINUE
    assert machine.phase == Phase.GATHERING
    assert machine.submit_image(PNG_URL) == SubmitResult.READY


def test_rejection_keeps_image_and_continues(strategies):
    factory = ChatFactory("Upload the 4H chart.", "That is a 1H chart. Please upload the 4H chart.")
    machine = _machine(strategies, factory)
    machine.start()

    assert machine.submit_image(PNG_URL) == SubmitResult.CONTINUE

    assert machine.phase == Phase.GATHERING
    assert machine.images == {0: PNG_URL}
    assert machine.turns[-1].text.startswith("That is a 1H chart")


def test_rejected_images_dropped_when_not_retained(strategies):
    factory = ChatFactory("Upload the 4H chart.", "Wrong timeframe.", ANALYSIS_READY_SENTINEL)
    machine = _machine(strategies, factory, retain_rejected_images=False)
    machine.start()

    machine.submit_image(PNG_URL)
    assert machine.images == {}
    machine.submit_image(JPEG_URL)
    assert machine.images == {0: JPEG_URL}


def test_single_flight_ignores_image_while_validating(strategies):
    nested = []
    factory = ChatFactory("Upload the 4H chart.", "Next chart please.")
    machine = _machine(strategies, factory)
    machine.start()

    def resubmit(parts):
        if isinstance(parts[0], ImagePart):
            nested.append(machine.submit_image(JPEG_URL))

    factory.chat.on_send = resubmit

    assert machine.submit_image(PNG_URL) == SubmitResult.CONTINUE
    assert nested == [SubmitResult.IGNORED]
    assert len(factory.chat.sent) == 2
    assert machine.images == {0: PNG_URL}


def test_submit_ignored_outside_gathering(strategies):
    machine = _machine(strategies, ChatFactory())
    assert machine.submit_image(PNG_URL) == SubmitResult.IGNORED
    assert machine.turns == []


def test_invalid_format_makes_no_model_call(strategies):
    factory = ChatFactory("Upload the 4H chart.")
    machine = _machine(strategies, factory)
    machine.start()

    assert machine.submit_image("data:image/gif;base64,R0lGOD") == SubmitResult.INVALID_FORMAT

    assert machine.phase == Phase.GATHERING
    assert machine.turns[-1].text == "Invalid image format. Please try again."
    assert len(factory.chat.sent) == 1
    assert machine.images == {}


def test_transport_error_returns_to_gathering(strategies):
    factory = ChatFactory("Upload the 4H chart.", ModelTransportError("503 Service Unavailable"), "Next.")
    machine = _machine(strategies, factory)
    machine.start()

    assert machine.submit_image(PNG_URL) == SubmitResult.ERROR
    assert machine.phase == Phase.GATHERING
    assert machine.turns[-1].is_error
    assert "503" in machine.turns[-1].text
    assert machine.images == {}

    assert machine.submit_image(PNG_URL) == SubmitResult.CONTINUE


def test_cancelled_reply_is_discarded(strategies):
    factory = ChatFactory("Upload the 4H chart.", ANALYSIS_READY_SENTINEL)
    machine = _machine(strategies, factory)
    machine.start()
    token = CancellationToken()
    factory.chat.on_send = lambda parts: token.cancel()

    assert machine.submit_image(PNG_URL, cancel_token=token) == SubmitResult.CANCELLED
    assert machine.phase == Phase.GATHERING
    assert machine.images == {}


def test_start_requires_strategy(strategies):
    machine = AcquisitionStateMachine(ChatFactory(), strategies)
    assert not machine.start()
    assert machine.error.startswith("Select at least one strategy")
    assert machine.phase == Phase.IDLE


def test_start_with_unknown_strategy(strategies):
    machine = AcquisitionStateMachine(ChatFactory(), strategies)
    machine.select_strategies(["missing"])
    assert not machine.start()
    assert machine.error == "Could not find the logic for the selected strategy."


def test_start_failure_is_reported(strategies):
    machine = _machine(strategies, ChatFactory(ModelTransportError("quota exceeded")))
    assert not machine.start()
    assert machine.phase == Phase.IDLE
    assert machine.error == "Failed to start guided session: quota exceeded"


def test_strategy_change_resets_session(strategies):
    factory = ChatFactory("Upload the 4H chart.", "Next.")
    machine = _machine(strategies, factory)
    machine.start()
    machine.submit_image(PNG_URL)

    machine.select_strategies(["trend"])
    assert machine.images == {0: PNG_URL}

    machine.select_strategies(["range", "trend"])
    assert machine.phase == Phase.IDLE
    assert machine.images == {}
    assert machine.turns == []


def test_load_images_skips_to_ready(strategies):
    machine = _machine(strategies, ChatFactory())

    assert machine.load_images({1: JPEG_URL, 0: PNG_URL})
    assert machine.is_ready
    assert machine.images == {0: PNG_URL, 1: JPEG_URL}
    assert not machine.load_images({0: WEBP_URL})


def test_usage_logged_per_successful_turn(strategies):
    usage = []
    factory = ChatFactory(ModelReply("Upload the 4H chart.", token_usage=120),
                          ModelTransportError("timeout"),
                          ModelReply(ANALYSIS_READY_SENTINEL, token_usage=80))
    machine = _machine(strategies, factory, usage_logger=usage.append)
    machine.start()
    machine.submit_image(PNG_URL)
    machine.submit_image(PNG_URL)

    assert usage == [120, 80]


def test_restart_mid_turn_discards_old_reply(strategies):
    factory = ChatFactory("Upload the 4H chart.", "Next chart please.")
    machine = _machine(strategies, factory)
    machine.start()
    old_chat = factory.chat

    def restart(parts):
        machine.select_strategies(["range"])
        machine.start()

    old_chat.on_send = restart

    assert machine.submit_image(PNG_URL) == SubmitResult.DISCARDED

    assert len(factory.opened) == 2
    assert "Range Fader" in factory.opened[1][0]
    assert machine.phase == Phase.GATHERING
    assert machine.images == {}
    assert [turn.text for turn in machine.turns] == ["Upload the 4H chart."]
    assert machine.selected_strategies == ["range"]


def test_reset_mid_turn_leaves_machine_idle(strategies):
    factory = ChatFactory("Upload the 4H chart.", ANALYSIS_READY_SENTINEL)
    machine = _machine(strategies, factory)
    machine.start()
    factory.chat.on_send = lambda parts: machine.reset()

    assert machine.submit_image(PNG_URL) == SubmitResult.DISCARDED
    assert machine.phase == Phase.IDLE
    assert machine.images == {}
    assert machine.turns == []


def test_cancelled_reply_is_still_metered(strategies):
    usage = []
    factory = ChatFactory(ModelReply("Upload the 4H chart.", token_usage=120),
                          ModelReply("Next chart please.", token_usage=65))
    machine = _machine(strategies, factory, usage_logger=usage.append)
    machine.start()
    token = CancellationToken()
    factory.chat.on_send = lambda parts: token.cancel()

    assert machine.submit_image(PNG_URL, cancel_token=token) == SubmitResult.CANCELLED
    assert usage == [120, 65]
