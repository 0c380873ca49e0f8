DEFAULT_TRANSFORM_PROMPT = """\
Replace the wheels on the car in this image with a set of modern aftermarket alloy wheels.
Keep the car body, paint, lighting, background and camera angle exactly as they are.
The new wheels must sit naturally in the wheel arches, with correct perspective, tyre sidewalls and shadows.
Do NOT add any text, watermarks or logos to the image.
"""

WHEEL_SWAP_PROMPT = "swap the car wheels with the ones in the second image"
