"""
Explicit map context.

One ``MapContext`` owns the render sink, the view state manager and a
liveness flag. It is created once at setup and passed to whatever drives the
map; nothing reaches the sink through module-level state. After
``teardown()`` any load still in flight is abandoned instead of being applied
to the discarded sink.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from loguru import logger

from .loaders import DatasetBundle, DatasetSources, load_datasets
from .scene import Scene, SceneSettings, apply_scene, build_scene
from .sink import LayerSink
from .view_state import MODE_QUERY_PARAM, ViewMode, ViewStateManager

BundleLoader = Callable[[], Awaitable[DatasetBundle]]


class MapContext:
    """
    Context for one live map.

    Usage:
        with MapContext(navigation={"v": "routes"}) as ctx:
            asyncio.run(ctx.load(sources))
            ctx.switch_view(ViewMode.STATISTIC)
    """

    def __init__(
        self,
        sink: Optional[LayerSink] = None,
        settings: Optional[SceneSettings] = None,
        navigation: Optional[Mapping[str, Any]] = None,
        statistic_opacity: float = 0.75,
        dimmed_opacity: float = 0.15,
    ):
        self.sink = sink or LayerSink()
        self.settings = settings or SceneSettings()
        self.navigation: Dict[str, Any] = dict(navigation or {})
        self.view = ViewStateManager(
            self.sink,
            initial_mode=ViewMode.from_query(self.navigation),
            statistic_opacity=statistic_opacity,
            dimmed_opacity=dimmed_opacity,
        )
        self.view.add_mode_listener(self._sync_navigation)
        self.scene: Optional[Scene] = None
        self.alive = True

    def __enter__(self) -> "MapContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()

    def _sync_navigation(self, mode: ViewMode) -> None:
        self.navigation[MODE_QUERY_PARAM] = mode.value

    @property
    def mode(self) -> ViewMode:
        return self.view.mode

    async def refresh(self, loader: BundleLoader) -> Optional[Scene]:
        """
        Load datasets, build the scene and apply it.

        Args:
            loader: Zero-argument coroutine function returning a DatasetBundle

        Returns:
            The applied scene, or None if the context was torn down while
            loading

        Raises:
            DatasetLoadError: If a dataset could not be loaded
        """
        bundle = await loader()
        if not self.alive:
            logger.debug("⏹️ Map context torn down during load, discarding datasets")
            return None

        scene = build_scene(bundle, self.view.mode, self.settings)
        apply_scene(self.sink, scene, self.view)
        self.scene = scene
        return scene

    async def load(self, sources: DatasetSources) -> Optional[Scene]:
        return await self.refresh(lambda: load_datasets(sources))

    def switch_view(self, mode: ViewMode) -> None:
        if not self.alive:
            logger.debug(f"Ignoring view switch to {mode.value} on a torn-down context")
            return
        self.view.switch_to(mode)
        if self.scene is not None:
            self.scene.mode = mode

    def teardown(self) -> None:
        if not self.alive:
            return
        self.alive = False
        self.sink.remove()
