import threading

from pdfmentor.services.provider_gateway import ProviderError, ProviderGateway, ProviderOk, ProviderSettings


class FakeLlm:
    model_name = "fake-model"

    def __init__(self, *, configured=True, reply="ok", error=None, block: threading.Event | None = None):
        self.is_configured = configured
        self.reply = reply
        self.error = error
        self.block = block

    def _respond(self, *args):
        if self.block is not None:
            self.block.wait(5)
        if self.error:
            raise self.error
        return self.reply

    generate_summary = _respond
    generate_flashcards = _respond
    generate_quiz = _respond
    answer_question = _respond
    generate_reply = _respond


class FakeNlu:
    is_configured = False


class FakeTts:
    is_configured = True

    def synthesize(self, text, voice, audio_format):
        return f"{voice}:{audio_format}:{text}".encode()


def _gateway(llm, timeout=1.0):
    return ProviderGateway(
        ProviderSettings(timeout_seconds=timeout),
        llm=llm,
        nlu=FakeNlu(),
        tts=FakeTts(),
    )


def test_successful_call_is_wrapped():
    gateway = _gateway(FakeLlm(reply="A summary."))
    result = gateway.generate_summary("text")
    assert result == ProviderOk(content="A summary.", provider="llm")


def test_unconfigured_provider_reports_error():
    gateway = _gateway(FakeLlm())
    result = gateway.extract_keywords("text", 5)
    assert isinstance(result, ProviderError)
    assert result.provider == "nlu"
    assert "not configured" in result.reason


def test_exceptions_become_errors():
    gateway = _gateway(FakeLlm(error=RuntimeError("quota exceeded")))
    result = gateway.generate_quiz("text", 5)
    assert isinstance(result, ProviderError)
    assert "quota exceeded" in result.reason


def test_slow_calls_time_out():
    release = threading.Event()
    gateway = _gateway(FakeLlm(block=release), timeout=0.05)
    try:
        result = gateway.answer_question("why?", "text")
    finally:
        release.set()
        gateway.close()
    assert isinstance(result, ProviderError)
    assert "timed out" in result.reason


def test_speech_arguments_pass_through():
    gateway = _gateway(FakeLlm())
    result = gateway.synthesize_speech("Hello there.", "en-GB_KateV3Voice", "wav")
    assert result.content == b"en-GB_KateV3Voice:wav:Hello there."


def test_describe_reports_configuration():
    description = _gateway(FakeLlm()).describe()
    assert description["llm"] == {"configured": True, "model": "fake-model"}
    assert description["nlu"] == {"configured": False}
    assert description["tts"] == {"configured": True}
    assert description["timeout_seconds"] == 1.0


def test_settings_from_config_defaults():
    settings = ProviderSettings.from_config({"GEMINI_API_KEY": "k", "PROVIDER_TIMEOUT_SECONDS": "12"})
    assert settings.gemini_api_key == "k"
    assert settings.gemini_model_name == "gemini-2.5-flash"
    assert settings.timeout_seconds == 12.0
    assert settings.max_workers == 4


def test_default_clients_without_credentials_are_unconfigured():
    gateway = ProviderGateway(ProviderSettings())
    try:
        assert isinstance(gateway.generate_summary("text"), ProviderError)
        assert isinstance(gateway.synthesize_speech("text"), ProviderError)
        assert isinstance(gateway.analyze_text("text"), ProviderError)
    finally:
        gateway.close()


class ConfiguredNluWithoutKeywords:
    is_configured = True

    def analyze(self, text):
        return {"keywords": []}


def test_missing_client_method_is_reported_not_raised():
    gateway = ProviderGateway(
        ProviderSettings(timeout_seconds=1.0),
        llm=FakeLlm(),
        nlu=ConfiguredNluWithoutKeywords(),
        tts=FakeTts(),
    )
    try:
        result = gateway.extract_keywords("text", 5)
        assert gateway.analyze_text("text") == ProviderOk(content={"keywords": []}, provider="nlu")
    finally:
        gateway.close()
    assert isinstance(result, ProviderError)
    assert "extract_keywords" in result.reason
