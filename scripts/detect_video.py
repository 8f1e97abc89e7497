"""Run ball and pose detection over a recorded football video."""

import sys
import time
from pathlib import Path

import cv2

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from footballvision.core.camera import CaptureSession, StaticPermissionAuthority
from footballvision.view_model import CameraViewModel


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/detect_video.py <video_path>")
        return
    video_path = Path(sys.argv[1])

    if not video_path.exists():
        print(f"Video not found: {video_path}")
        return

    print(f"Testing with video: {video_path}")
    print("-" * 50)

    print("\n1. Getting video metadata...")
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        print("Failed to open video!")
        return
    fps = cap.get(cv2.CAP_PROP_FPS)
    frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    cap.release()
    print(f"   Resolution: {width}x{height}")
    print(f"   FPS: {fps:.2f}")
    print(f"   Frame count: {frame_count}")

    print("\n2. Running detection...")
    view_model = CameraViewModel(
        session=CaptureSession(source=str(video_path)),
        permission_authority=StaticPermissionAuthority(True),
    )

    frames_with_ball = 0

    def on_state(snapshot):
        nonlocal frames_with_ball
        if snapshot.balls:
            frames_with_ball += 1
            box = snapshot.balls[0]
            print(f"   frame {snapshot.frames_processed}: {len(snapshot.balls)} ball(s), "
                  f"first at ({box.x:.3f}, {box.y:.3f}) {box.width:.3f}x{box.height:.3f}, "
                  f"{len(snapshot.joints)} joints")

    subscription = view_model.state.subscribe(on_state, drop_first=True)

    view_model.request_permission()
    while not view_model.is_permission_granted.value:
        time.sleep(0.05)

    view_model.start_session()
    while view_model.session.is_running:
        time.sleep(0.1)

    view_model.update_queue.flush(timeout=10.0)
    subscription.cancel()
    processed = view_model.frames_processed
    view_model.close()

    print(f"\n3. Results:")
    print(f"   Frames analyzed: {processed}")
    print(f"   Frames with ball detected: {frames_with_ball}")
    if processed:
        print(f"   Detection rate: {frames_with_ball / processed * 100:.1f}%")

    print("\n" + "=" * 50)
    print("Done!")


if __name__ == "__main__":
    main()
