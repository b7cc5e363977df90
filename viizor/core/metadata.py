"""
Metadata writer - publishes a converted project.

Writes the static viewer page next to the converted tree and then the
descriptor. The descriptor is always the last write: its presence is the
only signal that a project is complete. The conversion heartbeat marker is
removed once the descriptor is in place.
"""

import html
import json
import logging
from datetime import datetime, timezone
from string import Template

from viizor.core.artifact_store import VIEWER_NAME, ArtifactStore, atomic_write_text
from viizor.models.pydantic_models.project import ProjectDescriptor, StagingHandle

logger = logging.getLogger(__name__)

VIEWER_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="es">
<head>
    <meta charset="utf-8">
    <title>Viizor - $title</title>
    <link rel="stylesheet" type="text/css" href="/potree/build/potree/potree.css">
    <link rel="stylesheet" type="text/css" href="/potree/libs/jquery-ui/jquery-ui.min.css">
    <link rel="stylesheet" type="text/css" href="/potree/libs/openlayers3/ol.css">
    <link rel="stylesheet" type="text/css" href="/potree/libs/spectrum/spectrum.css">
    <link rel="stylesheet" type="text/css" href="/potree/libs/jstree/themes/mixed/style.css">
</head>
<body>
    <script src="/potree/libs/jquery/jquery-3.1.1.min.js"></script>
    <script src="/potree/libs/spectrum/spectrum.js"></script>
    <script src="/potree/libs/jquery-ui/jquery-ui.min.js"></script>
    <script src="/potree/libs/other/BinaryHeap.js"></script>
    <script src="/potree/libs/tween/tween.min.js"></script>
    <script src="/potree/libs/d3/d3.js"></script>
    <script src="/potree/libs/proj4/proj4.js"></script>
    <script src="/potree/libs/openlayers3/ol.js"></script>
    <script src="/potree/libs/i18next/i18next.js"></script>
    <script src="/potree/libs/jstree/jstree.js"></script>
    <script src="/potree/build/potree/potree.js"></script>
    <script src="/potree/libs/plasio/js/laslaz.js"></script>
    <div class="potree_container" style="position: absolute; width: 100%; height: 100%; left: 0px; top: 0px;">
        <div id="potree_render_area"></div>
        <div id="potree_sidebar_container"></div>
    </div>
    <script>
        window.viewer = new Potree.Viewer(document.getElementById("potree_render_area"));
        viewer.setEDLEnabled(false);
        viewer.setFOV(60);
        viewer.setPointBudget(5*1000*1000);
        viewer.setBackground("gradient");
        viewer.loadSettingsFromURL();
        viewer.setDescription("Viizor - " + $name_js);
        viewer.loadGUI(() => {
            viewer.setLanguage("es");
            viewer.toggleSidebar();
        });
        Potree.loadPointCloud($metadata_url_js, $name_js, e => {
            let pointcloud = e.pointcloud;
            let material = pointcloud.material;
            material.size = 1;
            material.minSize = 3;
            material.pointSizeType = Potree.PointSizeType.ATTENUATED;
            material.shape = Potree.PointShape.CIRCLE;
            viewer.scene.addPointCloud(pointcloud);
            viewer.fitToScreen();
        });
    </script>
</body>
</html>
"""
)


def render_viewer(original_name: str, metadata_url: str) -> str:
    # json.dumps yields a JS string literal; "</" is split so a name cannot close the script tag
    def js(value: str) -> str:
        return json.dumps(value).replace("</", "<\\/")

    return VIEWER_TEMPLATE.substitute(
        title=html.escape(original_name),
        name_js=js(original_name),
        metadata_url_js=js(metadata_url),
    )


class MetadataWriter:
    def __init__(self, store: ArtifactStore):
        self.store = store

    def write(
        self,
        project_id: str,
        handle: StagingHandle,
        uploaded_at: datetime | None = None,
    ) -> ProjectDescriptor:
        project_dir = self.store.project_dir(project_id)
        root_url = self.store.artifact_root_url(project_id)

        atomic_write_text(
            project_dir / VIEWER_NAME,
            render_viewer(handle.original_name, f"{root_url}metadata.json"),
        )

        descriptor = ProjectDescriptor(
            id=project_id,
            owner_id=handle.owner_id,
            original_name=handle.original_name,
            byte_size=handle.byte_size,
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
            viewer_url=self.store.viewer_url(project_id),
            artifact_root_url=root_url,
        )
        self.store.write_descriptor(descriptor)
        self.store.clear_in_progress(project_id)
        logger.info(f"Published project {project_id} for owner {handle.owner_id}")
        return descriptor
