"""Tests for CameraViewModel."""

import threading
from unittest.mock import patch

import pytest

from conftest import FakeRequest, FakeSession, make_observation, make_pose, wait_for
from footballvision.core.camera import CaptureSessionError, PermissionDeniedError
from footballvision.detection.schemas import BoundingBox, JointName, JointPosition


class TestInitialization:
    """Initial state of a freshly built view model."""

    def test_default_collaborators(self):
        from footballvision.detection.pose import BodyPoseEstimator
        from footballvision.detection.recognizer import ObjectRecognizer
        from footballvision.view_model import CameraViewModel

        view_model = CameraViewModel()
        try:
            assert view_model.session is not None
            assert isinstance(view_model.body_pose_request, BodyPoseEstimator)
            assert isinstance(view_model.object_recognition_request, ObjectRecognizer)
            # Models load lazily, so construction does no inference work
            assert view_model.body_pose_request.model is None
            assert view_model.object_recognition_request.model is None
        finally:
            view_model.close()

    def test_initial_published_state(self, view_model):
        assert view_model.is_permission_granted.value is False
        assert len(view_model.detected_joints.value) == 0
        assert view_model.detected_balls.value == ()
        assert view_model.frames_processed == 0

    def test_ball_settings_default_to_config(self, view_model):
        assert view_model.ball_labels == ("ball", "sports ball", "soccer ball", "football")
        assert view_model.ball_confidence_threshold == 0.5


class TestPermission:
    """Tests for request_permission."""

    def test_grant_is_published(self, make_view_model):
        view_model = make_view_model(granted=True)
        received = []
        done = threading.Event()

        def on_change(granted):
            received.append(granted)
            done.set()

        view_model.is_permission_granted.subscribe(on_change, drop_first=True)
        view_model.request_permission()

        assert done.wait(2.0)
        assert received == [True]
        assert view_model.is_permission_granted.value is True

    def test_denial_is_published(self, make_view_model):
        view_model = make_view_model(granted=False)
        done = threading.Event()
        received = []

        def on_change(granted):
            received.append(granted)
            done.set()

        view_model.is_permission_granted.subscribe(on_change, drop_first=True)
        view_model.request_permission()

        assert done.wait(2.0)
        assert received == [False]

    def test_permission_published_on_update_queue(self, make_view_model):
        view_model = make_view_model(granted=True)
        on_queue = []
        done = threading.Event()

        def on_change(granted):
            on_queue.append(view_model.update_queue.is_current())
            done.set()

        view_model.is_permission_granted.subscribe(on_change, drop_first=True)
        view_model.request_permission()

        assert done.wait(2.0)
        assert on_queue == [True]

    def test_session_starts_on_grant_when_configured(self, make_view_model):
        session = FakeSession()
        view_model = make_view_model(granted=True, session=session)

        with patch("footballvision.view_model.settings.start_session_on_grant", True):
            view_model.request_permission()
            assert wait_for(lambda: session.is_running)

        assert session.handler == view_model.capture_output

    def test_session_not_started_on_grant_by_default(self, make_view_model):
        session = FakeSession()
        view_model = make_view_model(granted=True, session=session)

        view_model.request_permission()
        assert wait_for(lambda: view_model.is_permission_granted.value)
        view_model.update_queue.flush(2.0)

        assert session.start_calls == 0


class TestSession:
    """Tests for session lifecycle."""

    def test_start_requires_permission(self, view_model):
        with pytest.raises(PermissionDeniedError):
            view_model.start_session()
        assert view_model.session.start_calls == 0

    def test_start_after_grant(self, view_model):
        view_model.request_permission()
        assert wait_for(lambda: view_model.is_permission_granted.value)

        view_model.start_session()

        assert view_model.session.is_running
        assert view_model.session.handler == view_model.capture_output

    def test_start_propagates_capture_errors(self, make_view_model):
        view_model = make_view_model(session=FakeSession(fail_on_start=True))
        view_model.request_permission()
        assert wait_for(lambda: view_model.is_permission_granted.value)

        with pytest.raises(CaptureSessionError):
            view_model.start_session()

    def test_stop(self, view_model):
        view_model.request_permission()
        assert wait_for(lambda: view_model.is_permission_granted.value)
        view_model.start_session()

        view_model.stop_session()

        assert not view_model.session.is_running


class TestBodyPoseProcessing:
    """Tests for joint extraction and publishing."""

    def test_process_takes_first_observation(self, view_model):
        first = make_pose(center_head=(1.0, 2.0, 3.0), center_shoulder=(0.5, 1.5, 2.5))
        second = make_pose(root=(0.0, 0.0, 0.0))

        joints = view_model.process_body_pose_observations([first, second])

        assert set(joints) == {JointName.CENTER_HEAD, JointName.CENTER_SHOULDER}

    def test_process_without_observation_is_empty(self, view_model):
        assert len(view_model.process_body_pose_observations([])) == 0

    def test_processed_joints_are_read_only(self, view_model):
        joints = view_model.process_body_pose_observations([make_pose(root=(0.1, 0.2, 0.3))])
        with pytest.raises(TypeError):
            joints[JointName.SPINE] = JointPosition(0, 0, 0)

    def test_published_joints_reach_subscribers(self, view_model):
        mock_joints = {
            JointName.CENTER_HEAD: JointPosition(x=1.0, y=2.0, z=3.0),
            JointName.CENTER_SHOULDER: JointPosition(x=0.5, y=1.5, z=2.5),
        }
        received = []
        done = threading.Event()

        def on_joints(joints):
            received.append(joints)
            done.set()

        view_model.detected_joints.subscribe(on_joints, drop_first=True)
        view_model.publish_joints(mock_joints)

        assert done.wait(1.0)
        joints = received[0]
        assert len(joints) == len(mock_joints)
        assert joints[JointName.CENTER_HEAD].x == 1.0
        assert joints[JointName.CENTER_SHOULDER].y == 1.5

    def test_new_frame_replaces_joints(self, view_model, frame):
        view_model.body_pose_request.observations = [make_pose(center_head=(0.1, 0.1, 0.0))]
        view_model.capture_output(frame)
        view_model.body_pose_request.observations = [make_pose(root=(0.5, 0.5, 0.0))]
        view_model.capture_output(frame)
        view_model.update_queue.flush(2.0)

        assert set(view_model.detected_joints.value) == {JointName.ROOT}


class TestObjectProcessing:
    """Tests for ball detection and publishing."""

    def test_ball_detected(self, view_model):
        ball_box = (0.1, 0.1, 0.2, 0.2)
        observations = [
            make_observation("ball", 0.9, ball_box),
            make_observation("cat", 0.8, (0.5, 0.5, 0.1, 0.1)),
        ]
        received = []
        done = threading.Event()

        def on_balls(balls):
            received.append(balls)
            done.set()

        view_model.detected_balls.subscribe(on_balls, drop_first=True)
        view_model.publish_balls(view_model.process_object_observations(observations))

        assert done.wait(1.0)
        balls = received[0]
        assert len(balls) == 1
        assert balls[0].x == 0.1
        assert balls[0].width == 0.2

    def test_no_ball_detected(self, view_model):
        observations = [make_observation("cat", 0.8, (0.5, 0.5, 0.1, 0.1))]
        received = []
        done = threading.Event()

        def on_balls(balls):
            received.append(balls)
            done.set()

        view_model.detected_balls.subscribe(on_balls, drop_first=True)
        view_model.publish_balls(view_model.process_object_observations(observations))

        assert done.wait(1.0)
        assert received == [()]

    def test_custom_vocabulary(self, make_view_model):
        view_model = make_view_model(ball_labels=["pelota"], ball_confidence_threshold=0.2)
        observations = [
            make_observation("pelota", 0.3, (0.1, 0.1, 0.1, 0.1)),
            make_observation("ball", 0.9, (0.2, 0.2, 0.1, 0.1)),
        ]

        balls = view_model.process_object_observations(observations)

        assert balls == (BoundingBox(0.1, 0.1, 0.1, 0.1),)


class TestCaptureOutput:
    """Tests for the per-frame path from inference to published state."""

    def test_frame_runs_both_requests_and_publishes(self, make_view_model, frame):
        view_model = make_view_model(
            pose_observations=[make_pose(center_head=(0.4, 0.2, 0.0))],
            object_observations=[make_observation("sports ball", 0.8, (0.6, 0.7, 0.05, 0.05))],
        )

        view_model.capture_output(frame)
        assert view_model.update_queue.flush(2.0)

        assert len(view_model.body_pose_request.frames) == 1
        assert view_model.body_pose_request.frames[0] is frame
        assert view_model.object_recognition_request.frames[0] is frame
        assert view_model.frames_processed == 1
        assert set(view_model.detected_joints.value) == {JointName.CENTER_HEAD}
        assert view_model.detected_balls.value == (BoundingBox(0.6, 0.7, 0.05, 0.05),)

    def test_frames_delivered_by_session(self, make_view_model, frame):
        session = FakeSession()
        view_model = make_view_model(
            object_observations=[make_observation("football", 0.9, (0.1, 0.1, 0.1, 0.1))],
            session=session,
        )
        view_model.request_permission()
        assert wait_for(lambda: view_model.is_permission_granted.value)
        view_model.start_session()

        for _ in range(3):
            session.deliver(frame)
        view_model.update_queue.flush(2.0)

        assert view_model.frames_processed == 3
        assert len(view_model.detected_balls.value) == 1

    def test_failed_request_counts_as_empty(self, make_view_model, frame):
        view_model = make_view_model(
            pose_observations=[make_pose(root=(0.5, 0.5, 0.0))],
        )
        view_model.object_recognition_request = FakeRequest(error=RuntimeError("model crashed"))

        view_model.capture_output(frame)
        view_model.update_queue.flush(2.0)

        assert view_model.detected_balls.value == ()
        assert set(view_model.detected_joints.value) == {JointName.ROOT}

    def test_frame_update_applies_joints_and_balls_together(self, make_view_model, frame):
        view_model = make_view_model(
            pose_observations=[make_pose(root=(0.5, 0.5, 0.0))],
            object_observations=[make_observation("ball", 0.9, (0.1, 0.1, 0.1, 0.1))],
        )
        snapshots = []
        view_model.state.subscribe(snapshots.append, drop_first=True)

        view_model.capture_output(frame)
        view_model.update_queue.flush(2.0)

        # One state change per frame, carrying both results
        assert len(snapshots) == 1
        assert snapshots[0].frames_processed == 1
        assert set(snapshots[0].joints) == {JointName.ROOT}
        assert len(snapshots[0].balls) == 1

    def test_slot_subscribers_see_whole_frame(self, view_model):
        seen = []

        def on_joints(joints):
            snapshot = view_model.snapshot()
            seen.append((dict(joints), snapshot, view_model.detected_balls.value))

        view_model.detected_joints.subscribe(on_joints, drop_first=True)
        view_model.publish_frame(
            {JointName.ROOT: JointPosition(1.0, 0.0, 0.0)},
            [BoundingBox(0.1, 0.1, 0.1, 0.1)],
        )
        assert view_model.update_queue.flush(2.0)

        assert len(seen) == 1
        joints, snapshot, balls = seen[0]
        assert set(joints) == {JointName.ROOT}
        assert len(snapshot.balls) == 1
        assert set(snapshot.joints) == {JointName.ROOT}
        assert snapshot.frames_processed == 1
        assert balls == (BoundingBox(0.1, 0.1, 0.1, 0.1),)
        assert view_model.state.value.balls == balls

    def test_snapshots_never_mix_frames(self, make_view_model, frame):
        view_model = make_view_model()
        mixed = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                snapshot = view_model.snapshot()
                if snapshot.balls and snapshot.joints:
                    # Frame i publishes i balls and a root at x == i
                    if len(snapshot.balls) != int(snapshot.joints[JointName.ROOT].x):
                        mixed.append(snapshot)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(1, 30):
                joints = {JointName.ROOT: JointPosition(float(i), 0.0, 0.0)}
                balls = [BoundingBox(0.1, 0.1, 0.01, 0.01)] * i
                view_model.publish_frame(joints, balls)
            view_model.update_queue.flush(2.0)
        finally:
            stop.set()
            thread.join()

        assert mixed == []
        assert view_model.frames_processed == 29


class TestClose:
    def test_close_stops_session_and_queue(self, view_model):
        view_model.close()

        assert view_model.session.stop_calls >= 1
        assert view_model.update_queue.closed
