#!/usr/bin/env python3
"""
Minimal Example: edstab API Usage
=================================

Shows the essential API calls without extra boilerplate.
This is the "quick reference" version.
"""

import cv2

from edstab.core.config import EngineConfig
from edstab.core.video import VideoReader
from edstab.outputs import FrameCropper, SinkManager
from edstab.registration import (
    EDRansacStabilizer,
    FeatureExtractor,
    ObjectLocator,
    ReferenceObject,
)
from edstab.pipeline import Pipeline


# =============================================================================
# STEP 1: MANUAL FRAME LOOP
# Equivalent to: edstab run input.mp4 -r object.jpg -out window --crop 1280x720
# =============================================================================

input_video = "input.mp4"
reference_image = "object.jpg"

config = EngineConfig(smoothing_window_frames=15, min_inliers=10)

# One extractor for both stages, so each frame is analysed once
extractor = FeatureExtractor(config.detector_feature_cap)
reference = ReferenceObject.from_image(cv2.imread(reference_image), extractor)

locator = ObjectLocator(reference, extractor, config)
stabilizer = EDRansacStabilizer(config, extractor)
cropper = FrameCropper(1280, 720)

with VideoReader(input_video) as reader:
    for frame in reader:
        detection = locator.locate(frame)
        stabilized = stabilizer.stabilize(frame, detection)
        out = cropper.crop(stabilized)
        
        cv2.imshow("edstab", out.data)
        if cv2.waitKey(1) & 0xFF == ord('q'):
            break

cv2.destroyAllWindows()


# =============================================================================
# STEP 2: SAME THING WITH THE PIPELINE
# Equivalent to: edstab run input.mp4 -r object.jpg \
#   -out video=filename=stabilized.mp4:fps=30 -out csv=filename=crops.csv
# =============================================================================

outputs = SinkManager()
outputs.add_output("video=filename=stabilized.mp4:fps=30")
outputs.add_output("csv=filename=crops.csv")

locator.reset()
stabilizer.reset()

with VideoReader(input_video) as reader:
    pipeline = Pipeline(reader, stabilizer, cropper, locator=locator, sinks=[outputs])
    stats = pipeline.run()

print("Pipeline stats:", stats.to_dict())
