"""Rasterization of render nodes through headless Chromium.

The pipeline only depends on the :class:`Rasterizer` protocol; the Playwright
implementation below is what the service wires in.  Readiness is signalled
by the page itself (image load/error events, ``document.fonts.ready`` and two
animation frames) and raced against a fixed ceiling so a broken image can
delay a capture but never stall it.
"""
from __future__ import annotations

import io
import logging
import time
from typing import Protocol

from PIL import Image
from playwright.sync_api import sync_playwright

from playwright_environment import ensure_chromium_installed, is_missing_browser_error
from report_errors import RenderCaptureError
from report_models import RasterImage, RenderNode


logger = logging.getLogger(__name__)

CHROME_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--disable-background-timer-throttling",
    "--memory-pressure-off",
    "--font-render-hinting=none",
]

READINESS_SCRIPT = """
async ({ timeoutMs, rootId }) => {
  const pending = Array.from(document.images).filter((img) => !img.complete);
  const settleImages = pending.map((img) => new Promise((resolve) => {
    img.addEventListener('load', resolve, { once: true });
    img.addEventListener('error', resolve, { once: true });
  }));
  const fonts = document.fonts ? document.fonts.ready : Promise.resolve();
  const ready = Promise.all([...settleImages, fonts]).then(() => 'ready');
  const ceiling = new Promise((resolve) => setTimeout(() => resolve('timeout'), timeoutMs));
  const outcome = await Promise.race([ready, ceiling]);
  await new Promise((resolve) => requestAnimationFrame(() => requestAnimationFrame(resolve)));
  const root = document.getElementById(rootId);
  return {
    outcome,
    images: document.images.length,
    unloaded: Array.from(document.images).filter((img) => !img.complete).length,
    height: root ? root.scrollHeight : 0,
  };
}
"""


class Rasterizer(Protocol):
    def rasterize(self, node: RenderNode, scale: float) -> RasterImage: ...


def image_from_bytes(data: bytes, image_format: str, scale: float) -> RasterImage:
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except Exception as exc:
        raise RenderCaptureError(f"Captured image could not be decoded: {exc}") from exc
    if width <= 0 or height <= 0:
        raise RenderCaptureError(f"Captured image is empty ({width}x{height})")
    return RasterImage(width=width, height=height, data=data, image_format=image_format, scale=scale)


class PlaywrightRasterizer:
    """Captures ``#report-root`` of a render node as a bitmap.

    Use as a context manager: one browser is launched per report generation
    and each capture gets its own browser context so a device scale factor
    can be set per batch.
    """

    def __init__(
        self,
        *,
        viewport_width: int = 794,
        resource_timeout_ms: int = 3000,
        capture_format: str = "jpeg",
        jpeg_quality: int = 92,
        headless: bool = True,
    ) -> None:
        self.viewport_width = viewport_width
        self.resource_timeout_ms = resource_timeout_ms
        self.capture_format = capture_format
        self.jpeg_quality = jpeg_quality
        self.headless = headless
        self._play = None
        self._browser = None

    def __enter__(self) -> "PlaywrightRasterizer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        if self._browser is not None:
            return
        browser_start = time.time()
        install_attempted = False
        try:
            self._play = sync_playwright().start()
        except Exception as exc:
            raise RenderCaptureError(f"Unable to start Playwright: {exc}") from exc

        while True:
            try:
                self._browser = self._play.chromium.launch(
                    headless=self.headless,
                    args=CHROME_ARGS,
                    timeout=30000,
                    chromium_sandbox=False,
                )
                break
            except Exception as exc:
                if not install_attempted and is_missing_browser_error(exc):
                    logger.warning("Chromium missing; attempting automatic install")
                    install_attempted = True
                    if ensure_chromium_installed(logger):
                        continue
                self.close()
                raise RenderCaptureError(f"Unable to launch Chromium: {exc}") from exc

        logger.info("Browser launched in %.2fs", time.time() - browser_start)

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception as exc:
                logger.warning("Browser close failed: %s", exc)
            self._browser = None
        if self._play is not None:
            try:
                self._play.stop()
            except Exception as exc:
                logger.warning("Playwright stop failed: %s", exc)
            self._play = None

    def rasterize(self, node: RenderNode, scale: float) -> RasterImage:
        if scale <= 0:
            raise ValueError("scale must be positive")
        if self._browser is None:
            raise RenderCaptureError("Rasterizer has not been started")

        html_content = node.to_html()
        context = None
        started = time.time()
        try:
            context = self._browser.new_context(
                viewport={"width": self.viewport_width, "height": 1123},
                device_scale_factor=scale,
            )
            page = context.new_page()
            page.set_default_timeout(60000)
            page.set_content(html_content, wait_until="domcontentloaded", timeout=30000)

            readiness = page.evaluate(
                READINESS_SCRIPT,
                {"timeoutMs": self.resource_timeout_ms, "rootId": RenderNode.ROOT_ID},
            )
            if readiness.get("outcome") == "timeout":
                logger.warning(
                    "Resource wait hit %dms ceiling with %s of %s image(s) unloaded; capturing anyway",
                    self.resource_timeout_ms,
                    readiness.get("unloaded"),
                    readiness.get("images"),
                )
            else:
                logger.debug("Render node ready: %s", readiness)

            locator = page.locator(f"#{RenderNode.ROOT_ID}")
            if self.capture_format == "png":
                data = locator.screenshot(type="png")
                image_format = "PNG"
            else:
                data = locator.screenshot(type="jpeg", quality=self.jpeg_quality)
                image_format = "JPEG"
        except Exception as exc:
            raise RenderCaptureError(f"Capture failed: {type(exc).__name__}: {exc}") from exc
        finally:
            if context is not None:
                try:
                    context.close()
                except Exception as exc:
                    logger.debug("Context close failed: %s", exc)

        image = image_from_bytes(data, image_format, scale)
        logger.info(
            "Captured %dx%d %s at %.1fx in %.2fs (%d bytes)",
            image.width,
            image.height,
            image_format,
            scale,
            time.time() - started,
            len(data),
        )
        return image


__all__ = ["PlaywrightRasterizer", "Rasterizer", "image_from_bytes"]
