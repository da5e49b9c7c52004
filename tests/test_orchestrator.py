"""End-to-end runs against scripted upstreams."""

import json

import pytest
from jose import jwt

from conftest import respond
from mediarelay.errors import (
    CredentialError,
    DownloadError,
    JobFailedError,
    JobTimeoutError,
    MalformedAcceptanceError,
    MissingLocatorError,
    StorageError,
    SubmissionError,
    UpstreamRejectedError,
    ValidationError,
)
from mediarelay.models import GenerationRequest
from mediarelay.services.orchestrator import JobOrchestrator
from mediarelay.services.storage import ObjectStorage

KLING = "https://api.klingai.com/v1/videos"
KLING_SECRETS = {"access_key": "ak", "secret_key": "sk"}
CDN = "https://cdn.kling.test/out.mp4"


def kling_status(status, **task):
    return respond(200, json={"code": 0, "data": {"task_id": "task-1", "task_status": status, **task}})


def kling_done(url=CDN):
    videos = [{"url": url, "cover_image_url": "https://cdn.kling.test/c.jpg", "duration": "5"}]
    return kling_status("succeed", task_result={"videos": videos if url else []})


def kling_upstream(upstream, *statuses):
    upstream.add("POST", f"{KLING}/text2video", respond(200, json={"code": 0, "data": {"task_id": "task-1"}}))
    upstream.add("GET", f"{KLING}/text2video/task-1", *statuses)
    upstream.add("GET", CDN, respond(200, content=b"MP4DATA", headers={"content-type": "video/mp4"}))
    return upstream


async def run(provider, upstream, storage, scheduler, request, secrets):
    async with upstream.client() as client:
        orchestrator = JobOrchestrator(provider, storage, client=client, scheduler=scheduler)
        return await orchestrator.run(request, secrets)


# --- happy path ---

async def test_kling_queued_queued_running_succeeded(providers, upstream, storage, scheduler):
    kling_upstream(
        upstream,
        kling_status("submitted"),
        kling_status("submitted"),
        kling_status("processing"),
        kling_done(),
    )

    result = await run(
        providers["kling"], upstream, storage, scheduler,
        GenerationRequest(prompt="a cat surfing"), KLING_SECRETS,
    )

    body = result.to_dict()
    assert body["success"] is True
    assert body["job_id"] == "task-1"
    assert body["video_url"] == "https://storage.test/kling-videos/task-1.mp4"
    assert body["result_url"] == body["video_url"]
    assert body["mode"] == "text-to-video"
    assert body["cover_image_url"] == "https://cdn.kling.test/c.jpg"

    assert len(upstream.calls("GET", f"{KLING}/text2video/task-1")) == 4
    (download,) = upstream.calls("GET", CDN)
    assert "authorization" not in download.headers
    assert storage.objects[("kling-videos", "task-1.mp4")] == (b"MP4DATA", "video/mp4")

    (submit,) = upstream.calls("POST", KLING)
    token = submit.headers["authorization"].removeprefix("Bearer ")
    claims = jwt.decode(
        token, "sk", algorithms=["HS256"], options={"verify_exp": False, "verify_nbf": False}
    )
    assert claims["iss"] == "ak"
    assert json.loads(submit.content)["model_name"] == "kling-v1-6"


async def test_same_job_materialized_once(providers, upstream, storage, scheduler):
    kling_upstream(upstream, kling_done())
    request = GenerationRequest(prompt="a cat surfing")

    first = await run(providers["kling"], upstream, storage, scheduler, request, KLING_SECRETS)
    second = await run(providers["kling"], upstream, storage, scheduler, request, KLING_SECRETS)

    assert first.stored == second.stored
    assert list(storage.objects) == [("kling-videos", "task-1.mp4")]


# --- failures before any network ---

@pytest.mark.parametrize(
    "request_, secrets, error",
    [
        (GenerationRequest(prompt=""), KLING_SECRETS, ValidationError),
        (
            GenerationRequest(prompt="p", options={"image_tail_url": "https://img.test/t.png"}),
            KLING_SECRETS,
            ValidationError,
        ),
        (GenerationRequest(prompt="p"), {"access_key": "ak"}, CredentialError),
    ],
)
async def test_rejected_without_network(providers, upstream, storage, scheduler, request_, secrets, error):
    with pytest.raises(error):
        await run(providers["kling"], upstream, storage, scheduler, request_, secrets)
    assert upstream.requests == []
    assert storage.uploads == 0


# --- submission ---

async def test_submission_500_never_polls(providers, upstream, storage, scheduler):
    upstream.add("POST", f"{KLING}/text2video", respond(500, text="internal error"))

    with pytest.raises(SubmissionError) as exc:
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )

    assert isinstance(exc.value, UpstreamRejectedError)
    assert exc.value.status_code == 500
    assert upstream.calls("GET", KLING) == []
    assert scheduler.sleeps == []


async def test_kling_nonzero_code_rejected(providers, upstream, storage, scheduler):
    upstream.add("POST", f"{KLING}/text2video", respond(200, json={"code": 1102, "message": "balance"}))
    with pytest.raises(UpstreamRejectedError, match="balance"):
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )


async def test_acceptance_without_job_id(providers, upstream, storage, scheduler):
    upstream.add("POST", f"{KLING}/text2video", respond(200, json={"code": 0, "data": {}}))
    with pytest.raises(MalformedAcceptanceError):
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )


# --- polling outcomes ---

async def test_never_terminal_times_out_without_fetch(providers, upstream, storage, scheduler):
    kling_upstream(upstream, kling_status("processing"))
    start = scheduler.now()

    with pytest.raises(JobTimeoutError) as exc:
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )

    assert exc.value.job_id == "task-1"
    assert exc.value.status_code == 504
    assert scheduler.now() - start <= 900 + 10
    assert upstream.calls("GET", CDN) == []
    assert storage.uploads == 0


async def test_failed_job_reports_reason(providers, upstream, storage, scheduler):
    kling_upstream(
        upstream,
        kling_status("processing"),
        kling_status("failed", task_status_msg="content policy violation"),
    )
    with pytest.raises(JobFailedError) as exc:
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )
    assert exc.value.reason == "content policy violation"
    assert exc.value.to_dict()["job_id"] == "task-1"


async def test_succeeded_without_locator(providers, upstream, storage, scheduler):
    kling_upstream(upstream, kling_done(url=None))
    with pytest.raises(MissingLocatorError) as exc:
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )
    assert exc.value.job_id == "task-1"
    assert storage.uploads == 0


async def test_download_failure(providers, upstream, storage, scheduler):
    kling_upstream(upstream, kling_done())
    upstream.add("GET", CDN, respond(404, text="gone"))
    with pytest.raises(DownloadError) as exc:
        await run(
            providers["kling"], upstream, storage, scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )
    assert exc.value.job_id == "task-1"
    assert not isinstance(exc.value, MissingLocatorError)


class BrokenStorage(ObjectStorage):

    async def upload(self, bucket, key, data, content_type, overwrite=True):
        raise RuntimeError("disk gone")

    def public_url(self, bucket, key):
        return ""


async def test_unexpected_storage_failure_wrapped(providers, upstream, scheduler):
    kling_upstream(upstream, kling_done())
    with pytest.raises(StorageError, match="disk gone") as exc:
        await run(
            providers["kling"], upstream, BrokenStorage(), scheduler,
            GenerationRequest(prompt="p"), KLING_SECRETS,
        )
    assert exc.value.job_id == "task-1"


# --- other providers ---

SORA = "https://api.openai.com/v1/videos"


async def test_sora_with_reference_image(providers, upstream, storage, scheduler):
    upstream.add("GET", "https://img.test/ref.png", respond(200, content=b"PNG", headers={"content-type": "image/png"}))
    upstream.add("POST", SORA, respond(200, json={"id": "vid_1", "status": "queued"}))
    upstream.add(
        "GET", f"{SORA}/vid_1",
        respond(200, json={"id": "vid_1", "status": "in_progress", "progress": 50}),
        respond(200, json={
            "id": "vid_1", "status": "completed", "model": "sora-2", "size": "1280x720", "seconds": "5",
        }),
    )
    upstream.add("GET", f"{SORA}/vid_1/content", respond(200, content=b"SORA", headers={"content-type": "video/mp4"}))

    result = await run(
        providers["sora"], upstream, storage, scheduler,
        GenerationRequest(prompt="a lighthouse", reference_url="https://img.test/ref.png"),
        {"openai_api_key": "sk-openai"},
    )

    (submit,) = upstream.calls("POST", SORA)
    assert submit.headers["content-type"].startswith("multipart/form-data")
    assert b'name="input_reference"' in submit.content
    (download,) = upstream.calls("GET", f"{SORA}/vid_1/content")
    assert download.headers["authorization"] == "Bearer sk-openai"
    assert download.url.params["variant"] == "video"
    assert result.to_dict()["video_url"] == "https://storage.test/sora-videos/vid_1.mp4"
    assert result.to_dict()["size"] == "1280x720"


async def test_sora_unreachable_reference(providers, upstream, storage, scheduler):
    upstream.add("GET", "https://img.test/ref.png", respond(404))
    with pytest.raises(SubmissionError, match="input_reference_url") as exc:
        await run(
            providers["sora"], upstream, storage, scheduler,
            GenerationRequest(prompt="p", reference_url="https://img.test/ref.png"),
            {"openai_api_key": "sk"},
        )
    assert exc.value.status_code == 400
    assert upstream.calls("POST", SORA) == []


GEMINI = "https://generativelanguage.googleapis.com/v1beta"
OPERATION = "models/veo-3.1-generate-preview/operations/op1"


async def test_veo_operation_flow(providers, upstream, storage, scheduler):
    file_uri = f"{GEMINI}/files/f1:download?alt=media"
    upstream.add(
        "POST", f"{GEMINI}/models/veo-3.1-generate-preview:predictLongRunning",
        respond(200, json={"name": OPERATION}),
    )
    upstream.add(
        "GET", f"{GEMINI}/{OPERATION}",
        respond(200, json={"name": OPERATION}),
        respond(200, json={
            "name": OPERATION,
            "done": True,
            "response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": file_uri}}]}},
        }),
    )
    upstream.add("GET", f"{GEMINI}/files/f1", respond(200, content=b"VEO"))

    result = await run(
        providers["veo"], upstream, storage, scheduler,
        GenerationRequest(prompt="waves"), {"gemini_api_key": "g-key"},
    )

    assert result.stored.key == "models_veo-3.1-generate-preview_operations_op1.mp4"
    (download,) = upstream.calls("GET", f"{GEMINI}/files/f1")
    assert download.headers["x-goog-api-key"] == "g-key"
    # declared media type wins over the missing content-type header
    assert storage.objects[("veo-videos", result.stored.key)][1] == "video/mp4"


HEYGEN = "https://api.heygen.com"


async def test_heygen_discovery_falls_back(providers, upstream, storage, scheduler, settings):
    upstream.add("GET", f"{HEYGEN}/v2/avatars", respond(500, text="down"))
    upstream.add(
        "GET", f"{HEYGEN}/v2/voices",
        respond(200, json={"data": {"voices": [
            {"voice_id": "fr-1", "language": "French"},
            {"voice_id": "en-1", "language": "English"},
        ]}}),
    )
    upstream.add("POST", f"{HEYGEN}/v2/video/generate", respond(200, json={"data": {"video_id": "hv1"}}))
    upstream.add(
        "GET", f"{HEYGEN}/v1/video_status.get",
        respond(200, json={"data": {"status": "waiting"}}),
        respond(200, json={"data": {"status": "completed", "video_url": "https://files.heygen.test/v.mp4"}}),
    )
    upstream.add("GET", "https://files.heygen.test/", respond(200, content=b"HEYGEN"))

    result = await run(
        providers["heygen"], upstream, storage, scheduler,
        GenerationRequest(prompt="Welcome to the demo"), {"heygen_api_key": "hk"},
    )

    (submit,) = upstream.calls("POST", f"{HEYGEN}/v2/video/generate")
    video_input = json.loads(submit.content)["video_inputs"][0]
    assert video_input["character"]["avatar_id"] == settings.HEYGEN_FALLBACK_AVATAR_ID
    assert video_input["voice"]["voice_id"] == "en-1"
    assert submit.headers["x-api-key"] == "hk"
    assert result.to_dict()["avatar_id"] == settings.HEYGEN_FALLBACK_AVATAR_ID
    (download,) = upstream.calls("GET", "https://files.heygen.test/")
    assert "x-api-key" not in download.headers


ASSEMBLY = "https://api.assemblyai.com/v2/transcript"


async def test_assemblyai_subtitles(providers, upstream, storage, scheduler):
    upstream.add("POST", ASSEMBLY, respond(200, json={"id": "tx1", "status": "queued"}))
    upstream.add(
        "GET", f"{ASSEMBLY}/tx1",
        respond(200, json={"id": "tx1", "status": "processing"}),
        respond(200, json={
            "id": "tx1", "status": "completed", "language_code": "en", "audio_duration": 12, "text": "hi",
        }),
    )
    upstream.add("GET", f"{ASSEMBLY}/tx1/vtt", respond(200, text="WEBVTT\n\n00:00.000 --> 00:01.000\nhi\n"))

    result = await run(
        providers["assemblyai"], upstream, storage, scheduler,
        GenerationRequest(
            reference_url="https://audio.test/talk.mp3", options={"subtitle_format": "vtt"}
        ),
        {"assemblyai_api_key": "aai"},
    )

    body = result.to_dict()
    assert body["subtitle_url"] == "https://storage.test/transcripts/tx1.vtt"
    assert body["audio_duration"] == 12
    assert body["text"] == "hi"
    data, content_type = storage.objects[("transcripts", "tx1.vtt")]
    assert data.startswith(b"WEBVTT")
    assert content_type == "text/vtt"
    (download,) = upstream.calls("GET", f"{ASSEMBLY}/tx1/vtt")
    assert download.headers["authorization"] == "aai"
    assert scheduler.sleeps == [6, 6]


async def test_assemblyai_error_status(providers, upstream, storage, scheduler):
    upstream.add("POST", ASSEMBLY, respond(200, json={"id": "tx2"}))
    upstream.add("GET", f"{ASSEMBLY}/tx2", respond(200, json={"id": "tx2", "status": "error", "error": "no audio"}))
    with pytest.raises(JobFailedError, match="no audio"):
        await run(
            providers["assemblyai"], upstream, storage, scheduler,
            GenerationRequest(reference_url="https://audio.test/silence.mp3"),
            {"assemblyai_api_key": "aai"},
        )


SUPADATA = "https://api.supadata.ai/v1/transcript"
YOUTUBE = "https://www.youtube.com/watch?v=abc"


async def test_supadata_job_is_polled(providers, upstream, storage, scheduler):
    upstream.add("GET", f"{SUPADATA}?", respond(202, json={"jobId": "job-7"}))
    upstream.add(
        "GET", f"{SUPADATA}/job-7",
        respond(200, json={"status": "queued"}),
        respond(200, json={"status": "active"}),
        respond(200, json={
            "status": "completed",
            "lang": "en",
            "availableLangs": ["en", "de"],
            "content": [
                {"text": " Hello ", "offset": 0, "duration": 1500, "lang": "en"},
                {"text": "   ", "offset": 1500, "duration": 200, "lang": "en"},
                {"text": "big\n world", "offset": 1700, "duration": 2300, "lang": "en"},
            ],
        }),
    )

    result = await run(
        providers["supadata"], upstream, storage, scheduler,
        GenerationRequest(reference_url=YOUTUBE, options={"language": "en"}),
        {"supadata_api_key": "sd"},
    )

    body = result.to_dict()
    assert body["job_id"] == "job-7"
    assert body["transcript_url"] == "https://storage.test/transcripts/job-7.txt"
    assert body["text"] == "Hello big world"
    assert body["lang"] == "en"
    assert body["available_langs"] == ["en", "de"]
    assert body["segments"] == [
        {"start": 0.0, "duration": 1.5, "text": "Hello"},
        {"start": 1.7, "duration": 2.3, "text": "big\n world"},
    ]
    data, content_type = storage.objects[("transcripts", "job-7.txt")]
    assert data == b"Hello big world"
    assert content_type.startswith("text/plain")
    assert scheduler.sleeps == [8, 8, 8]

    (submit,) = upstream.calls("GET", f"{SUPADATA}?")
    assert submit.url.params["url"] == YOUTUBE
    assert submit.url.params["lang"] == "en"
    assert all(r.headers["x-api-key"] == "sd" for r in upstream.requests)


async def test_supadata_immediate_transcript(providers, upstream, storage, scheduler):
    upstream.add(
        "GET", f"{SUPADATA}?",
        respond(200, json={"content": "Short clip text", "lang": "en", "availableLangs": ["en"]}),
    )
    request = GenerationRequest(reference_url=YOUTUBE)

    first = await run(providers["supadata"], upstream, storage, scheduler, request, {"supadata_api_key": "sd"})
    second = await run(providers["supadata"], upstream, storage, scheduler, request, {"supadata_api_key": "sd"})

    assert first.handle.job_id.startswith("sync-")
    assert first.handle.job_id == second.handle.job_id
    assert first.to_dict()["text"] == "Short clip text"
    assert first.to_dict()["segments"] == []
    assert scheduler.sleeps == []
    assert upstream.calls("GET", f"{SUPADATA}/") == []
    assert list(storage.objects) == [("transcripts", f"{first.handle.job_id}.txt")]


@pytest.mark.parametrize(
    "status, http_status, message",
    [
        (404, 404, "not found or is private"),
        (206, 422, "no captions available"),
    ],
)
async def test_supadata_distinct_rejections(
    providers, upstream, storage, scheduler, status, http_status, message
):
    upstream.add("GET", f"{SUPADATA}?", respond(status, json={"error": "nope"}))
    with pytest.raises(UpstreamRejectedError, match=message) as exc:
        await run(
            providers["supadata"], upstream, storage, scheduler,
            GenerationRequest(reference_url=YOUTUBE), {"supadata_api_key": "sd"},
        )
    assert exc.value.status_code == http_status
    assert storage.uploads == 0


async def test_supadata_failed_job(providers, upstream, storage, scheduler):
    upstream.add("GET", f"{SUPADATA}?", respond(202, json={"jobId": "job-8"}))
    upstream.add("GET", f"{SUPADATA}/job-8", respond(200, json={"status": "failed", "error": "video too long"}))
    with pytest.raises(JobFailedError, match="video too long") as exc:
        await run(
            providers["supadata"], upstream, storage, scheduler,
            GenerationRequest(reference_url=YOUTUBE), {"supadata_api_key": "sd"},
        )
    assert exc.value.job_id == "job-8"
    assert storage.uploads == 0


async def test_supadata_empty_transcript_fails(providers, upstream, storage, scheduler):
    upstream.add("GET", f"{SUPADATA}?", respond(200, json={"content": [{"text": " ", "offset": 0, "duration": 10}]}))
    with pytest.raises(JobFailedError, match="came back empty"):
        await run(
            providers["supadata"], upstream, storage, scheduler,
            GenerationRequest(reference_url=YOUTUBE), {"supadata_api_key": "sd"},
        )
    assert storage.uploads == 0
