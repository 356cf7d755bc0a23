"""
XML 序列化器

基于标准库 xml.etree.ElementTree。

反序列化的属性查找规则:
    1. 根元素下的直接子元素，依次尝试原名、小写、camelCase、PascalCase
    2. 按深度排序的所有后代元素，忽略下划线和短横线后比较（先区分大小写，再不区分）
    3. 属性名为 value 时回退到根元素自身的文本
    4. 找不到元素时查找 XML 属性；DeserializeAs(attribute=True) 只查找属性，
       DeserializeAs(content=True) 读取当前元素的文本
    未设置命名空间时会先移除文档中的所有命名空间。

列表属性:
    - 容器元素: <items><item/><item/></items>，子元素名称与第一个子元素相同
    - 内联元素: 没有容器元素时，按元素类型名查找根元素下的同名子元素
    - 继承 list 的自定义类先按元素类型名收集元素，再映射类上的其余属性
"""

from __future__ import annotations

import base64
import logging
import xml.etree.ElementTree as ET
from collections import deque
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Mapping, get_args, get_origin

from restflex.constants import CONTENT_TYPE_XML, XML_ACCEPT, DataFormat
from restflex.exceptions import APIClientConfigurationError, APIClientDeserializationError
from restflex.fields import DEFAULT_SERIALIZE_AS, DeserializeAs, PropertyDescriptor, get_property_descriptors, has_properties
from restflex.mapping import (
    SCALAR_TYPES,
    Culture,
    ValueConverter,
    apply_values,
    create_instance,
    is_list_derived,
    is_list_type,
    is_scalar_type,
    list_item_type,
    type_name,
    unwrap_optional,
)
from restflex.serializer import BaseRestSerializer, normalize_content_type
from restflex.utils import format_timespan, remove_underscores_and_dashes, to_camel_case, to_pascal_case

if TYPE_CHECKING:
    from restflex.parameters import BodyParameter
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)

_NO_SETTINGS = DeserializeAs()
_NUMERIC_TYPES = (bool, int, float)


def local_name(tag: str) -> str:
    """"{ns}name" -> "name" """
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def qualify(name: str, namespace: str | None) -> str:
    return f"{{{namespace}}}{name}" if namespace else name


def strip_namespaces(root: ET.Element) -> None:
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = local_name(element.tag)
        for key in [k for k in element.attrib if k.startswith("{")]:
            element.attrib[local_name(key)] = element.attrib.pop(key)


def element_value(element: ET.Element) -> str:
    """元素及其后代的全部文本"""
    return "".join(element.itertext())


def _by_depth(root: ET.Element, include_self: bool = False) -> Iterator[ET.Element]:
    queue = deque([root])
    while queue:
        element = queue.popleft()
        if include_self or element is not root:
            yield element
        queue.extend(element)


def _candidate_names(name: str) -> list[str]:
    return list(dict.fromkeys([name, name.lower(), to_camel_case(name), to_pascal_case(name)]))


class _XmlReader:
    """单次反序列化使用的读取器"""

    def __init__(self, namespace: str | None, converter: ValueConverter):
        self.namespace = namespace
        self.converter = converter

    def read(self, root: ET.Element, target_type: Any) -> Any:
        target_type, _ = unwrap_optional(target_type)
        if is_list_type(target_type) or is_list_derived(target_type):
            return self.handle_list_derivative(root, target_type)
        if target_type is Any or target_type is object:
            return element_value(root)
        if is_scalar_type(target_type):
            return self.convert_text(element_value(root), target_type, local_name(root.tag))
        if has_properties(target_type):
            return self.map(target_type, root)
        raise APIClientDeserializationError(f"Unable to map XML to type {type_name(target_type)}")

    # ========== 对象映射 ==========

    def map(self, cls: type, root: ET.Element) -> Any:
        return create_instance(cls, self.map_values(cls, root))

    def map_values(self, cls: type, root: ET.Element) -> dict[str, Any]:
        descriptors = get_property_descriptors(cls)
        content_properties = [d for d in descriptors if d.deserialize_as and d.deserialize_as.content]
        if len(content_properties) > 1:
            raise APIClientConfigurationError(
                f"Class {cls.__name__} cannot have two properties marked with DeserializeAs(content=True)"
            )

        values = {}
        for descriptor in descriptors:
            found, value = self.read_property(root, descriptor)
            if found:
                values[descriptor.name] = value
        return values

    def read_property(self, root: ET.Element, descriptor: PropertyDescriptor) -> tuple[bool, Any]:
        prop_type, is_optional = unwrap_optional(descriptor.type)
        settings = descriptor.deserialize_as or _NO_SETTINGS
        name = descriptor.source_name

        if settings.content:
            if root.text is None:
                return False, None
            return True, self.convert_text(root.text, prop_type, descriptor.name)

        if settings.attribute:
            raw = self.get_attribute_by_name(root, name, exact=descriptor.has_explicit_name)
        else:
            raw = self.get_value_from_xml(root, name, descriptor.has_explicit_name)

        if raw is None:
            if is_list_type(prop_type) and not settings.attribute:
                return True, self._as_container(prop_type, self.read_inline_list(root, list_item_type(prop_type)))
            return False, None

        if prop_type is Any or prop_type is object:
            return True, raw

        if is_scalar_type(prop_type):
            if is_optional and raw == "":
                return True, None
            return True, self.convert_text(raw, prop_type, descriptor.name)

        if is_list_type(prop_type):
            container = self.get_element_by_name(root, name)
            items = self.read_container_list(container, list_item_type(prop_type)) if container is not None else []
            return True, self._as_container(prop_type, items)

        if is_list_derived(prop_type):
            return True, self.handle_list_derivative(root, prop_type, name)

        if get_origin(prop_type) in (dict, Mapping) or prop_type is dict:
            container = self.get_element_by_name(root, name)
            if container is None:
                return False, None
            value_type = (get_args(prop_type) + (Any, Any))[1]
            return True, {local_name(child.tag): self._read_item(child, value_type) for child in container}

        if has_properties(prop_type):
            element = self.get_element_by_name(root, name)
            if element is None:
                return False, None
            return True, self.map(prop_type, element)

        return True, self.converter.convert(raw, prop_type)

    def convert_text(self, text: str, target_type: Any, property_name: str) -> Any:
        target_type, _ = unwrap_optional(target_type)
        if target_type is bool:
            text = text.lower()
        try:
            return self.converter.convert(text, target_type)
        except APIClientDeserializationError as e:
            if isinstance(target_type, type) and issubclass(target_type, _NUMERIC_TYPES) and not issubclass(
                target_type, Enum
            ):
                raise APIClientDeserializationError(
                    f"Couldn't parse the value of '{text}' into the '{property_name}' property, "
                    f"because it isn't a type of '{type_name(target_type)}'."
                ) from e
            raise

    # ========== 列表 ==========

    @staticmethod
    def _as_container(target_type: Any, items: list) -> Any:
        origin = get_origin(target_type) or target_type
        if origin in (set, frozenset):
            return origin(items)
        if origin is tuple:
            return tuple(items)
        return items

    def _read_item(self, element: ET.Element, item_type: Any) -> Any:
        item_type, _ = unwrap_optional(item_type)
        if item_type is Any or item_type is object:
            return element_value(element)
        if is_scalar_type(item_type):
            return self.convert_text(element_value(element), item_type, local_name(element.tag))
        if is_list_type(item_type):
            return self.read_container_list(element, list_item_type(item_type))
        if is_list_derived(item_type):
            return self.handle_list_derivative(element, item_type)
        return self.map(item_type, element)

    def populate_list(self, elements: list[ET.Element], item_type: Any) -> list:
        return [self._read_item(element, item_type) for element in elements]

    def read_container_list(self, container: ET.Element, item_type: Any) -> list:
        children = list(container)
        if not children:
            return []
        first_tag = children[0].tag
        return self.populate_list([child for child in children if child.tag == first_tag], item_type)

    def read_inline_list(self, root: ET.Element, item_type: Any) -> list:
        first = self.get_element_by_name(root, type_name(unwrap_optional(item_type)[0]))
        if first is None:
            return []
        return self.populate_list([child for child in root if child.tag == first.tag], item_type)

    def handle_list_derivative(self, root: ET.Element, target_type: Any, property_name: str | None = None) -> Any:
        item_type = list_item_type(target_type)
        elements = self._find_list_elements(root, type_name(unwrap_optional(item_type)[0]))
        items = self.populate_list(elements, item_type)

        if not is_list_derived(target_type):
            return self._as_container(target_type, items)

        instance = target_type()
        instance.extend(items)
        container = self._direct_child(root, property_name) if property_name else None
        apply_values(instance, self.map_values(target_type, container if container is not None else root))
        return instance

    def _find_list_elements(self, root: ET.Element, name: str) -> list[ET.Element]:
        descendants = [element for element in root.iter() if element is not root]

        for candidate in (name, name.lower(), to_camel_case(name)):
            qualified = qualify(candidate, self.namespace)
            if matches := [element for element in descendants if element.tag == qualified]:
                return matches

        sanitized = remove_underscores_and_dashes(name)
        if matches := [e for e in descendants if remove_underscores_and_dashes(local_name(e.tag)) == sanitized]:
            return matches
        return [e for e in descendants if remove_underscores_and_dashes(local_name(e.tag)).lower() == sanitized.lower()]

    # ========== 元素/属性查找 ==========

    def _direct_child(self, root: ET.Element, name: str) -> ET.Element | None:
        for candidate in _candidate_names(name):
            qualified = qualify(candidate, self.namespace)
            for child in root:
                if child.tag == qualified:
                    return child
        return None

    def get_element_by_name(self, root: ET.Element, name: str) -> ET.Element | None:
        if (child := self._direct_child(root, name)) is not None:
            return child

        sanitized = remove_underscores_and_dashes(name)
        ordered = list(_by_depth(root))
        for element in ordered:
            if remove_underscores_and_dashes(local_name(element.tag)) == sanitized:
                return element
        for element in ordered:
            if remove_underscores_and_dashes(local_name(element.tag)).lower() == sanitized.lower():
                return element

        if name.lower() == "value" and not any(local_name(key).lower() == "value" for key in root.attrib):
            return root
        return None

    def get_attribute_by_name(self, root: ET.Element, name: str, exact: bool = False) -> str | None:
        names = [name] if exact else _candidate_names(name)
        sanitized = remove_underscores_and_dashes(name).lower()
        for element in _by_depth(root, include_self=True):
            for key, value in element.attrib.items():
                attribute_name = local_name(key)
                if attribute_name in names:
                    return value
                if not exact and remove_underscores_and_dashes(attribute_name).lower() == sanitized:
                    return value
        return None

    def get_value_from_xml(self, root: ET.Element, name: str, use_exact_name: bool = False) -> str | None:
        element = self.get_element_by_name(root, name)
        if element is None:
            return self.get_attribute_by_name(root, name, exact=use_exact_name)
        if element.text is not None or len(element) or element.attrib:
            return element_value(element)
        return None


class _XmlWriter:
    """单次序列化使用的写入器"""

    def __init__(self, namespace: str | None, date_format: str | None):
        self.namespace = namespace
        self.date_format = date_format

    def format_value(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, datetime):
            return value.strftime(self.date_format) if self.date_format else value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, timedelta):
            return format_timespan(value)
        if isinstance(value, (bytes, bytearray)):
            return base64.b64encode(bytes(value)).decode("ascii")
        return str(value)

    def write(self, obj: Any) -> ET.Element:
        root = ET.Element(qualify(type(obj).__name__, self.namespace))
        self.write_value(root, obj)
        return root

    def write_value(self, element: ET.Element, value: Any) -> None:
        if isinstance(value, (SCALAR_TYPES, Enum)):
            element.text = self.format_value(value)
        elif isinstance(value, (list, tuple, set, frozenset)):
            for item in value:
                if item is None:
                    continue
                child = ET.SubElement(element, qualify(type(item).__name__, self.namespace))
                self.write_value(child, item)
            if not isinstance(value, list) or type(value) is list:
                return
            # 继承 list 的自定义类还需要写出自身的属性
            self.map(element, value)
        elif isinstance(value, Mapping):
            for key, item in value.items():
                if item is None:
                    continue
                child = ET.SubElement(element, qualify(str(key), self.namespace))
                self.write_value(child, item)
        else:
            self.map(element, value)

    def map(self, element: ET.Element, obj: Any) -> None:
        if has_properties(type(obj)):
            descriptors = get_property_descriptors(type(obj))
            names = [d.name for d in descriptors]
            settings_list = [d.serialize_as or DEFAULT_SERIALIZE_AS for d in descriptors]
        else:
            names = [key for key in vars(obj) if not key.startswith("_")]
            settings_list = [DEFAULT_SERIALIZE_AS] * len(names)

        ordered = sorted(zip(names, settings_list), key=lambda pair: pair[1].index)
        for attribute_name, settings in ordered:
            value = getattr(obj, attribute_name, None)
            if value is None:
                continue
            name = settings.transform_name(settings.name or attribute_name)
            if settings.attribute:
                element.set(name, self.format_value(value))
            elif settings.content:
                element.text = self.format_value(value)
            else:
                child = ET.SubElement(element, qualify(name, self.namespace))
                self.write_value(child, value)


class XmlSerializer(BaseRestSerializer):
    """
    XML 序列化器

    参数:
        root_element: 反序列化时作为根的元素名；序列化时作为外层包装元素名
        namespace: XML 命名空间，设置后元素名按该命名空间匹配且不会移除文档中的命名空间
        date_format: datetime 的格式（strftime/strptime）
        culture: 数值转换的区域设置
    """

    data_format = DataFormat.XML
    content_type = CONTENT_TYPE_XML
    accepted_content_types = XML_ACCEPT

    def __init__(
        self,
        root_element: str | None = None,
        namespace: str | None = None,
        date_format: str | None = None,
        culture: Culture | None = None,
    ):
        self.root_element = root_element
        self.namespace = namespace
        self.date_format = date_format
        self.culture = culture

    def supports_content_type(self, content_type: str) -> bool:
        normalized = normalize_content_type(content_type)
        return normalized in self.accepted_content_types or normalized.endswith("+xml")

    def serialize(self, obj: Any) -> str | None:
        return self._serialize(obj, self.namespace)

    def serialize_parameter(self, parameter: BodyParameter) -> str | None:
        namespace = getattr(parameter, "xml_namespace", None) or self.namespace
        return self._serialize(parameter.value, namespace)

    def _serialize(self, obj: Any, namespace: str | None) -> str | None:
        if obj is None:
            return None
        if isinstance(obj, str):
            return obj

        root = _XmlWriter(namespace, self.date_format).write(obj)
        if self.root_element:
            wrapper = ET.Element(qualify(self.root_element, namespace))
            wrapper.append(root)
            root = wrapper
        return ET.tostring(root, encoding="unicode")

    def deserialize(self, response: RestResponse, target_type: Any) -> Any:
        content = response.content
        if not content or not content.strip():
            return None

        root = ET.fromstring(content)
        request = response.request
        namespace = (request.xml_namespace if request is not None else None) or self.namespace
        if not namespace:
            strip_namespaces(root)

        root_element = response.root_element or self.root_element
        if root_element:
            qualified = qualify(root_element, namespace)
            root = next((element for element in root.iter() if element.tag == qualified), None)
            if root is None:
                logger.debug(f"Root element '{root_element}' not found in XML response")
                return None

        date_format = (request.date_format if request is not None else None) or self.date_format
        reader = _XmlReader(namespace, ValueConverter(culture=self.culture, date_format=date_format))
        return reader.read(root, target_type)
