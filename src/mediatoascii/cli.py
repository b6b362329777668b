import argparse
import logging
import os
import sys
import time

from mediatoascii import ffmpeg
from mediatoascii.charsets import CHAR_SETS, DEFAULT_CHAR_SET
from mediatoascii.config import DEFAULT_HEIGHT_SAMPLE_SCALE, ImageConfig, Rotation, VideoConfig
from mediatoascii.errors import Cancelled, MediaToAsciiError
from mediatoascii.image import process_image
from mediatoascii.jobs import submit_video


def _add_render_options(parser):
    parser.add_argument('-s', '--scale-down', type=float, default=1.0,
                        help='Divide the source dimensions by this factor before sampling (default: 1.0)')
    parser.add_argument('-f', '--font-size', type=float, default=12.0,
                        help='Glyph height in the rendered output (default: 12)')
    parser.add_argument('--height-sample-scale', type=float, default=DEFAULT_HEIGHT_SAMPLE_SCALE,
                        help=f'Vertical sampling correction for tall glyphs (default: {DEFAULT_HEIGHT_SAMPLE_SCALE})')
    parser.add_argument('--invert', action='store_true', help='Reverse the character ramp')
    parser.add_argument('--overwrite', action='store_true', help='Replace existing output files')
    parser.add_argument('-c', '--charset', choices=CHAR_SETS.keys(), default=DEFAULT_CHAR_SET,
                        help=f'Character set to use (default: {DEFAULT_CHAR_SET})')
    parser.add_argument('--font', help='Path to a monospace TrueType/OpenType font')


def build_parser():
    parser = argparse.ArgumentParser(description='Convert images/video to ASCII art')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    image_parser = subparsers.add_parser('image', help='Convert an image')
    image_parser.add_argument('input_file', help='Path to the input image file')
    image_parser.add_argument('-o', '--output-text', help='Write the ASCII art as text to this path')
    image_parser.add_argument('-i', '--output-image', help='Render the ASCII art to this PNG/JPEG path')
    _add_render_options(image_parser)

    video_parser = subparsers.add_parser('video', help='Convert a video')
    video_parser.add_argument('input_file', help='Path to the input video file')
    video_parser.add_argument('output_file', help='Path of the rendered video')
    video_parser.add_argument('--max-fps', type=float, default=30.0,
                              help='Process at most this many frames per second (default: 30)')
    video_parser.add_argument('--use-max-fps-for-output', action='store_true',
                              help='Also cap the output frame rate at --max-fps')
    video_parser.add_argument('-r', '--rotate', type=int, choices=[r.value for r in Rotation], default=-1,
                              help='-1 none, 0 90° clockwise, 1 180°, 2 90° counter-clockwise (default: -1)')
    _add_render_options(video_parser)
    return parser


def _render_options(args):
    return dict(
        scale_down=args.scale_down,
        font_size=args.font_size,
        height_sample_scale=args.height_sample_scale,
        invert=args.invert,
        overwrite=args.overwrite,
        char_set=args.charset,
        font_path=args.font,
    )


def run_image(args):
    config = ImageConfig(
        image_path=args.input_file,
        output_file_path=args.output_text,
        output_image_path=args.output_image,
        **_render_options(args),
    )
    process_image(config)
    for path in (args.output_text, args.output_image):
        if path:
            print(f"ASCII art saved to {path}")


def run_video(args):
    config = VideoConfig(
        video_path=args.input_file,
        output_video_path=args.output_file,
        max_fps=args.max_fps,
        use_max_fps_for_output_video=args.use_max_fps_for_output,
        rotate=args.rotate,
        **_render_options(args),
    )
    start_time = time.time()
    job = submit_video(config)
    subscription = job.progress.subscribe()
    try:
        for value in subscription:
            print(f"\rProgress: {value * 100:5.1f}%", end='', flush=True)
        print()
        summary = job.result()
    except KeyboardInterrupt:
        job.cancel()
        job.result()
        return
    total_time = time.time() - start_time
    print(f"ASCII video saved to {summary.output_path}")
    print("\n=== Conversion Statistics ===")
    print(f"Total time: {total_time:.2f} seconds")
    print(f"Frames rendered: {summary.frames_rendered} of {summary.frames_read} (stride {summary.stride}), "
          f"{summary.frames_written} written")
    print(f"Output FPS: {summary.output_fps:.2f}, audio: {'yes' if summary.audio else 'no'}")
    if total_time > 0:
        print(f"Processing speed: {summary.frames_read / total_time:.1f} frames/second")


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ffmpeg.setup_ffmpeg()
    if not os.path.exists(args.input_file):
        print(f"Error: File '{args.input_file}' not found")
        sys.exit(1)
    try:
        if args.command == 'image':
            run_image(args)
        else:
            run_video(args)
    except Cancelled:
        print("\nConversion cancelled")
        sys.exit(1)
    except (MediaToAsciiError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
