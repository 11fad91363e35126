from capture.rendering.engine import RenderEngineAdapter, WaitPolicy
from capture.rendering.playwright_engine import PlaywrightEngineAdapter
