"""Block templates for new GameObjects and components.

Templates follow the field order Unity itself writes, so a block created
here is indistinguishable from one saved by the editor once reimported.
"""

from __future__ import annotations

from unityedit.parser import CLASS_IDS, GAME_OBJECT, PREFAB_INSTANCE, TRANSFORM_CLASS_IDS

_RENDERER = "  m_CastShadows: 1\n  m_ReceiveShadows: 1\n  m_Materials:\n  - {fileID: 0}"

# Default fields written after m_Enabled for built-in components
COMPONENT_DEFAULTS: dict[int, str] = {
    20: (  # Camera
        "  serializedVersion: 2\n"
        "  m_ClearFlags: 1\n"
        "  m_BackGroundColor: {r: 0.19215687, g: 0.3019608, b: 0.4745098, a: 0}\n"
        "  m_projectionMatrixMode: 1\n"
        "  m_FOVAxisMode: 0\n"
        "  near clip plane: 0.3\n"
        "  far clip plane: 1000\n"
        "  field of view: 60\n"
        "  orthographic: 0\n"
        "  orthographic size: 5\n"
        "  m_Depth: -1"
    ),
    23: _RENDERER,  # MeshRenderer
    33: "  m_Mesh: {fileID: 0}",  # MeshFilter
    54: (  # Rigidbody
        "  m_Mass: 1\n  m_Drag: 0\n  m_AngularDrag: 0.05\n  m_UseGravity: 1\n  m_IsKinematic: 0"
    ),
    64: (  # MeshCollider
        "  m_IsTrigger: 0\n  m_Convex: 0\n  m_CookingOptions: 30\n  m_Mesh: {fileID: 0}"
    ),
    65: (  # BoxCollider
        "  m_IsTrigger: 0\n"
        "  m_Material: {fileID: 0}\n"
        "  m_Center: {x: 0, y: 0, z: 0}\n"
        "  m_Size: {x: 1, y: 1, z: 1}"
    ),
    82: (  # AudioSource
        "  m_PlayOnAwake: 1\n  m_Volume: 1\n  m_Pitch: 1\n  m_Loop: 0\n  m_Mute: 0\n  m_Priority: 128"
    ),
    95: "  m_Controller: {fileID: 0}",  # Animator
    96: _RENDERER + "\n  m_Time: 5\n  m_MinVertexDistance: 0.1",  # TrailRenderer
    108: (  # Light
        "  m_LightType: 1\n"
        "  m_Color: {r: 1, g: 0.95686275, b: 0.8392157, a: 1}\n"
        "  m_Intensity: 1\n"
        "  m_Range: 10\n"
        "  m_SpotAngle: 30\n"
        "  m_Shadows: 2"
    ),
    120: _RENDERER,  # LineRenderer
    135: (  # SphereCollider
        "  m_IsTrigger: 0\n"
        "  m_Material: {fileID: 0}\n"
        "  m_Center: {x: 0, y: 0, z: 0}\n"
        "  m_Radius: 0.5"
    ),
    136: (  # CapsuleCollider
        "  m_IsTrigger: 0\n"
        "  m_Material: {fileID: 0}\n"
        "  m_Center: {x: 0, y: 0, z: 0}\n"
        "  m_Radius: 0.5\n"
        "  m_Height: 2\n"
        "  m_Direction: 1"
    ),
    137: (  # SkinnedMeshRenderer
        "  m_CastShadows: 1\n  m_ReceiveShadows: 1\n  m_Quality: 0\n  m_Materials:\n  - {fileID: 0}"
    ),
    143: (  # CharacterController
        "  m_Height: 2\n"
        "  m_Radius: 0.5\n"
        "  m_SlopeLimit: 45\n"
        "  m_StepOffset: 0.3\n"
        "  m_SkinWidth: 0.08\n"
        "  m_Center: {x: 0, y: 0, z: 0}"
    ),
    198: "  m_PlayOnAwake: 1",  # ParticleSystem
    205: "  serializedVersion: 2\n  m_FadeMode: 0\n  m_AnimateCrossFading: 0",  # LODGroup
    212: (  # SpriteRenderer
        "  m_CastShadows: 0\n"
        "  m_ReceiveShadows: 0\n"
        "  m_Materials:\n"
        "  - {fileID: 0}\n"
        "  m_Color: {r: 1, g: 1, b: 1, a: 1}"
    ),
    222: "",  # CanvasRenderer
    223: "  m_RenderMode: 0\n  m_PixelPerfect: 0\n  m_SortingOrder: 0",  # Canvas
    225: (  # CanvasGroup
        "  m_Alpha: 1\n  m_Interactable: 1\n  m_BlocksRaycasts: 1\n  m_IgnoreParentGroups: 0"
    ),
}

# Classes that cannot be added as plain components
NON_COMPONENT_CLASS_IDS = frozenset({GAME_OBJECT, PREFAB_INSTANCE, 114}) | TRANSFORM_CLASS_IDS

_NAME_TO_CLASS_ID = {name.lower(): class_id for class_id, name in CLASS_IDS.items()}


def find_builtin_class_id(component_name: str) -> int | None:
    """Class ID of a built-in component by name (case-insensitive)."""
    class_id = _NAME_TO_CLASS_ID.get(component_name.strip().lower())
    if class_id is None or class_id in NON_COMPONENT_CLASS_IDS:
        return None
    return class_id


def game_object_yaml(
    game_object_id: int,
    transform_id: int,
    name: str,
    parent_transform_id: int = 0,
    root_order: int = 0,
    layer: int = 0,
) -> str:
    """GameObject + Transform block pair for a new empty object."""
    return f"""--- !u!1 &{game_object_id}
GameObject:
  m_ObjectHideFlags: 0
  m_CorrespondingSourceObject: {{fileID: 0}}
  m_PrefabInstance: {{fileID: 0}}
  m_PrefabAsset: {{fileID: 0}}
  serializedVersion: 6
  m_Component:
  - component: {{fileID: {transform_id}}}
  m_Layer: {layer}
  m_Name: {name}
  m_TagString: Untagged
  m_Icon: {{fileID: 0}}
  m_NavMeshLayer: 0
  m_StaticEditorFlags: 0
  m_IsActive: 1
--- !u!4 &{transform_id}
Transform:
  m_ObjectHideFlags: 0
  m_CorrespondingSourceObject: {{fileID: 0}}
  m_PrefabInstance: {{fileID: 0}}
  m_PrefabAsset: {{fileID: 0}}
  m_GameObject: {{fileID: {game_object_id}}}
  serializedVersion: 2
  m_LocalRotation: {{x: 0, y: 0, z: 0, w: 1}}
  m_LocalPosition: {{x: 0, y: 0, z: 0}}
  m_LocalScale: {{x: 1, y: 1, z: 1}}
  m_ConstrainProportionsScale: 0
  m_Children: []
  m_Father: {{fileID: {parent_transform_id}}}
  m_RootOrder: {root_order}
  m_LocalEulerAnglesHint: {{x: 0, y: 0, z: 0}}
"""


def component_yaml(class_id: int, component_id: int, game_object_id: int) -> str:
    """Block for a built-in component with its default fields."""
    defaults = COMPONENT_DEFAULTS.get(class_id, "")
    text = f"""--- !u!{class_id} &{component_id}
{CLASS_IDS[class_id]}:
  m_ObjectHideFlags: 0
  m_CorrespondingSourceObject: {{fileID: 0}}
  m_PrefabInstance: {{fileID: 0}}
  m_PrefabAsset: {{fileID: 0}}
  m_GameObject: {{fileID: {game_object_id}}}
  m_Enabled: 1
"""
    if defaults:
        text += defaults + "\n"
    return text


def mono_behaviour_yaml(component_id: int, game_object_id: int, script_guid: str) -> str:
    """MonoBehaviour block referencing the script with ``script_guid``."""
    return f"""--- !u!114 &{component_id}
MonoBehaviour:
  m_ObjectHideFlags: 0
  m_CorrespondingSourceObject: {{fileID: 0}}
  m_PrefabInstance: {{fileID: 0}}
  m_PrefabAsset: {{fileID: 0}}
  m_GameObject: {{fileID: {game_object_id}}}
  m_Enabled: 1
  m_EditorHideFlags: 0
  m_Script: {{fileID: 11500000, guid: {script_guid}, type: 3}}
  m_Name:
  m_EditorClassIdentifier:
"""


def prefab_variant_yaml(
    prefab_instance_id: int,
    stripped_game_object_id: int,
    stripped_transform_id: int,
    source_game_object_id: int,
    source_transform_id: int,
    source_guid: str,
    name: str,
    transform_class_id: int = 4,
) -> str:
    """Complete document for a prefab variant of the prefab with ``source_guid``."""
    transform_type = CLASS_IDS[transform_class_id]
    return f"""%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
--- !u!1 &{stripped_game_object_id} stripped
GameObject:
  m_CorrespondingSourceObject: {{fileID: {source_game_object_id}, guid: {source_guid}, type: 3}}
  m_PrefabInstance: {{fileID: {prefab_instance_id}}}
  m_PrefabAsset: {{fileID: 0}}
--- !u!{transform_class_id} &{stripped_transform_id} stripped
{transform_type}:
  m_CorrespondingSourceObject: {{fileID: {source_transform_id}, guid: {source_guid}, type: 3}}
  m_PrefabInstance: {{fileID: {prefab_instance_id}}}
  m_PrefabAsset: {{fileID: 0}}
--- !u!1001 &{prefab_instance_id}
PrefabInstance:
  m_ObjectHideFlags: 0
  serializedVersion: 2
  m_Modification:
    m_TransformParent: {{fileID: 0}}
    m_Modifications:
    - target: {{fileID: {source_game_object_id}, guid: {source_guid}, type: 3}}
      propertyPath: m_Name
      value: {name}
      objectReference: {{fileID: 0}}
    m_RemovedComponents: []
    m_RemovedGameObjects: []
    m_AddedGameObjects: []
    m_AddedComponents: []
  m_SourcePrefab: {{fileID: 100100000, guid: {source_guid}, type: 3}}
"""
